# hackernews-graphql -- users/auth.py
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

from django.contrib.auth import hashers

from hackernews.errors import InvalidToken, MissingToken, NotAuthenticated


class IdentityResolver(object):
    """Works out who is calling from the request's ``Authorization`` header."""

    prefix = 'Bearer '

    def __init__(self, tokens):
        self.tokens = tokens

    def resolve(self, headers):
        """Return the caller's user id, or None for an anonymous caller.

        ``headers`` is a case-insensitive mapping such as Django's ``request.headers``. Raises
        MissingToken when the header is present but carries no token, and NotAuthenticated when
        the token does not verify.
        """
        auth = headers.get('Authorization')
        if auth is None:
            return None
        token = auth[len(self.prefix):] if auth.startswith(self.prefix) else auth
        token = token.strip()
        if not token or token == self.prefix.strip():
            raise MissingToken()
        try:
            return self.tokens.verify(token)
        except InvalidToken as exc:
            raise NotAuthenticated() from exc


# ========== credential hashing ==========

def hash_password(password):
    return hashers.make_password(password)


def check_password(password, digest):
    return hashers.check_password(password, digest)


def burn_password_check(password):
    """Spend the same hashing time a real check would, for logins that match no user."""
    # same trick as django.contrib.auth.backends.ModelBackend
    hashers.make_password(password)
