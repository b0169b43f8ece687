# hackernews-graphql -- <project>/errors.py
#
# Copyright © 2026 The hackernews-graphql authors.
#
# Permission is hereby granted, free of charge, to any person obtaining
# a copy of this software and associated documentation files (the
# "Software"), to deal in the Software without restriction, including
# without limitation the rights to use, copy, modify, merge, publish,
# distribute, sublicense, and/or sell copies of the Software, and to
# permit persons to whom the Software is furnished to do so, subject to
# the following conditions:
#
# The above copyright notice and this permission notice shall be
# included in all copies or substantial portions of the Software.
#
# THE SOFTWARE IS PROVIDED "AS IS", WITHOUT WARRANTY OF ANY KIND,
# EXPRESS OR IMPLIED, INCLUDING BUT NOT LIMITED TO THE WARRANTIES OF
# MERCHANTABILITY, FITNESS FOR A PARTICULAR PURPOSE AND
# NONINFRINGEMENT. IN NO EVENT SHALL THE AUTHORS OR COPYRIGHT HOLDERS BE
# LIABLE FOR ANY CLAIM, DAMAGES OR OTHER LIABILITY, WHETHER IN AN ACTION
# OF CONTRACT, TORT OR OTHERWISE, ARISING FROM, OUT OF OR IN CONNECTION
# WITH THE SOFTWARE OR THE USE OR OTHER DEALINGS IN THE SOFTWARE.

"""Errors reported to API callers.

Every error carries a stable machine-readable ``kind``. graphql-core copies the ``extensions``
of the original exception onto the GraphQLError it reports, so clients see it as
``errors[].extensions.code`` next to the human-readable message.
"""


class HackerNewsError(Exception):
    kind = 'INTERNAL'
    default_message = 'Internal error'
    transient = False

    def __init__(self, message=None):
        super().__init__(message or self.default_message)

    @property
    def message(self):
        return self.args[0]

    @property
    def extensions(self):
        return {'code': self.kind}


class NotAuthenticated(HackerNewsError):
    kind = 'NOT_AUTHENTICATED'
    default_message = 'Not authenticated'


class MissingToken(HackerNewsError):
    kind = 'MISSING_TOKEN'
    default_message = 'No token found'


class InvalidToken(HackerNewsError):
    kind = 'INVALID_TOKEN'
    default_message = 'Invalid token'


class InvalidCredentials(HackerNewsError):
    kind = 'INVALID_CREDENTIALS'
    default_message = 'Invalid email or password!'


class LoginTaken(HackerNewsError):
    kind = 'LOGIN_TAKEN'
    default_message = 'A user with that email address already exists!'


class LinkNotFound(HackerNewsError):
    kind = 'LINK_NOT_FOUND'
    default_message = 'Requested link not found!'


class AlreadyVoted(HackerNewsError):
    kind = 'ALREADY_VOTED'
    default_message = 'A vote already exists for this user and link!'


class DataUnavailable(HackerNewsError):
    kind = 'DATA_UNAVAILABLE'
    default_message = 'The data store is unavailable, try again later'
    transient = True


def is_transient(error):
    """True if ``error`` (an exception or a GraphQLError wrapping one) may succeed on retry."""
    original = getattr(error, 'original_error', None) or error
    return getattr(original, 'transient', False)
