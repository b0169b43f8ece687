# hackernews-graphql -- users/tokens.py
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

from datetime import datetime, timezone

from jose import jwt
from jose.exceptions import JWTError

from hackernews.conf import get_setting
from hackernews.errors import InvalidToken


class TokenService(object):
    """Issues and verifies the signed bearer tokens that identify a user.

    Tokens are JWTs carrying the user id in a ``userId`` claim and an ``exp`` expiry. Nothing is
    stored server-side, so replacing the secret invalidates every token issued with the old one.
    """

    def __init__(self, secret, algorithm='HS256', lifetime=None):
        if not secret:
            raise ValueError('TokenService needs a signing secret')
        self.secret = secret
        self.algorithm = algorithm
        self.lifetime = lifetime if lifetime is not None else get_setting('TOKEN_LIFETIME')

    @classmethod
    def from_settings(cls):
        return cls(
            secret=get_setting('TOKEN_SECRET'),
            algorithm=get_setting('TOKEN_ALGORITHM'),
            lifetime=get_setting('TOKEN_LIFETIME'),
        )

    def issue(self, user_id):
        claims = {
            'userId': int(user_id),
            'exp': datetime.now(timezone.utc) + self.lifetime,
        }
        return jwt.encode(claims, self.secret, algorithm=self.algorithm)

    def verify(self, token):
        """Return the user id embedded in ``token``, or raise InvalidToken."""
        try:
            claims = jwt.decode(token, self.secret, algorithms=[self.algorithm])
        except JWTError as exc:
            # covers bad signatures, garbage input and ExpiredSignatureError
            raise InvalidToken('Invalid token: {}'.format(exc)) from exc
        user_id = claims.get('userId')
        if isinstance(user_id, bool) or not isinstance(user_id, int):
            raise InvalidToken('Invalid token: no user id')
        return user_id
