"""Navigator Cookie Session Meta information.
   Navigator Cookie Session keeps user-specific data in a single encrypted cookie.
"""
__title__ = 'navigator_cookie_session'
__description__ = (
   'Navigator Cookie Session keeps user-specific data '
   'in a single encrypted, expiring cookie.'
)
__version__ = '0.1.0'
__copyright__ = 'Copyright (c) 2023 Jesus Lara'
__author__ = 'Jesus Lara'
__author_email__ = 'jesuslarag@gmail.com'
__license__ = 'Apache-2.0'
__url__ = 'https://github.com/phenobarbital/navigator-cookie-session'
