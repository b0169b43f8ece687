# hackernews-graphql -- users/tests.py
#
# Copyright © 2017 Sean Bolton.
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

from datetime import timedelta

from django.test import TestCase, override_settings

import graphene
from jose import jwt

from hackernews.context import RequestContext
from hackernews.errors import InvalidToken, MissingToken, NotAuthenticated
from hackernews.schema import Mutation, Query
from hackernews.utils import error_codes, format_graphql_errors
from .auth import IdentityResolver, check_password, hash_password
from .models import UserModel
from .tokens import TokenService


# Hashing with the production hasher makes every test that creates a user slow.
FAST_HASHERS = ['django.contrib.auth.hashers.MD5PasswordHasher']


# ========== utility functions ==========

def create_test_user(name=None, password=None, email=None):
    user = UserModel.objects.create(
        name=name or 'Test User',
        password=hash_password(password or 'abc123'),
        email=email or 'test@user.com'
    )
    return user


def make_context(token=None, authorization=None, **kwargs):
    """A RequestContext as the gateway would build it for a request with these headers."""
    headers = {}
    if token is not None:
        headers['Authorization'] = 'Bearer {}'.format(token)
    if authorization is not None:
        headers['Authorization'] = authorization
    return RequestContext.from_headers(headers, **kwargs)


def token_for(user):
    return TokenService.from_settings().issue(user.pk)


# ========== token service tests ==========

class TokenServiceTests(TestCase):
    def setUp(self):
        self.tokens = TokenService('test-secret')

    def test_issue_and_verify(self):
        """a token maps back to the user id it was issued for"""
        token = self.tokens.issue(42)
        self.assertIsInstance(token, str)
        self.assertEqual(self.tokens.verify(token), 42)

    def test_tokens_are_opaque_jwts(self):
        token = self.tokens.issue(7)
        claims = jwt.get_unverified_claims(token)
        self.assertEqual(claims['userId'], 7)
        self.assertIn('exp', claims)

    def test_wrong_secret(self):
        """rotating the secret invalidates earlier tokens"""
        token = self.tokens.issue(42)
        with self.assertRaises(InvalidToken):
            TokenService('another-secret').verify(token)

    def test_expired(self):
        tokens = TokenService('test-secret', lifetime=timedelta(seconds=-10))
        token = tokens.issue(42)
        with self.assertRaises(InvalidToken):
            self.tokens.verify(token)

    def test_malformed(self):
        for token in ('', 'ArgleBargle', 'a.b.c', self.tokens.issue(1)[:-4]):
            with self.assertRaises(InvalidToken, msg=repr(token)):
                self.tokens.verify(token)

    def test_missing_user_id(self):
        token = jwt.encode({'sub': 'nobody'}, 'test-secret', algorithm='HS256')
        with self.assertRaises(InvalidToken):
            self.tokens.verify(token)

    def test_secret_required(self):
        with self.assertRaises(ValueError):
            TokenService('')

    @override_settings(HACKERNEWS={'TOKEN_SECRET': 'from-settings'})
    def test_from_settings(self):
        token = TokenService.from_settings().issue(3)
        self.assertEqual(TokenService('from-settings').verify(token), 3)


# ========== identity resolver tests ==========

class IdentityResolverTests(TestCase):
    def setUp(self):
        self.tokens = TokenService('test-secret')
        self.resolver = IdentityResolver(self.tokens)

    def test_anonymous(self):
        """no Authorization header means no identity, not an error"""
        self.assertIsNone(self.resolver.resolve({}))

    def test_valid(self):
        headers = {'Authorization': 'Bearer {}'.format(self.tokens.issue(5))}
        self.assertEqual(self.resolver.resolve(headers), 5)

    def test_empty_token(self):
        for auth in ('Bearer ', 'Bearer', 'Bearer    '):
            with self.assertRaises(MissingToken, msg=repr(auth)):
                self.resolver.resolve({'Authorization': auth})

    def test_invalid_token(self):
        """a token that doesn't verify is reported as NotAuthenticated"""
        with self.assertRaises(NotAuthenticated) as cm:
            self.resolver.resolve({'Authorization': 'Bearer AbDbAbDbAbDbA'})
        self.assertIsInstance(cm.exception.__cause__, InvalidToken)

    def test_not_bearer(self):
        with self.assertRaises(NotAuthenticated):
            self.resolver.resolve({'Authorization': 'ArgleBargle'})


# ========== signup mutation tests ==========

@override_settings(PASSWORD_HASHERS=FAST_HASHERS)
class SignupTests(TestCase):
    def setUp(self):
        self.query = '''
          mutation SignupMutation($email: String!, $password: String!, $name: String) {
            signup(email: $email, password: $password, name: $name) {
              token
              user { name email }
            }
          }
        '''
        self.variables = {
            'email': 'kirk@example.com',
            'password': 'abc123',
            'name': 'Jim Kirk',
        }
        self.expected = {
            'signup': {
                'token': 'REDACTED',
                'user': {
                    'name': 'Jim Kirk',
                    'email': 'kirk@example.com',
                }
            }
        }
        self.schema = graphene.Schema(query=Query, mutation=Mutation)

    def test_signup(self):
        """sucessfully create a user"""
        result = self.schema.execute(self.query, variable_values=self.variables,
                                     context_value=make_context())
        self.assertIsNone(result.errors, msg=format_graphql_errors(result.errors))
        token = result.data['signup']['token']
        result.data['signup']['token'] = 'REDACTED'
        self.assertEqual(result.data, self.expected,
                         msg='\n'+repr(self.expected)+'\n'+repr(result.data))
        # check that the user was created properly, with a hashed password
        user = UserModel.objects.get(email='kirk@example.com')
        self.assertEqual(user.name, 'Jim Kirk')
        self.assertNotEqual(user.password, 'abc123')
        self.assertTrue(check_password('abc123', user.password))
        self.assertEqual(TokenService.from_settings().verify(token), user.pk)

    def test_signup_duplicate(self):
        """should not be able to create two users with the same email"""
        result = self.schema.execute(self.query, variable_values=self.variables,
                                     context_value=make_context())
        self.assertIsNone(result.errors, msg=format_graphql_errors(result.errors))
        # now try to create a second one
        self.variables['name'] = 'Just Spock to Humans'
        self.variables['password'] = '26327790.8685354193060378'
        result = self.schema.execute(self.query, variable_values=self.variables,
                                     context_value=make_context())
        self.assertIsNotNone(result.errors,
                             msg='Creating user with duplicate email should have failed')
        self.assertEqual(error_codes(result.errors), ['LOGIN_TAKEN'])
        self.assertIn('user with that email address already exists', result.errors[0].message)
        expected = {'signup': None}  # empty result
        self.assertEqual(result.data, expected, msg='\n'+repr(expected)+'\n'+repr(result.data))
        self.assertEqual(UserModel.objects.filter(email='kirk@example.com').count(), 1)


# ========== login mutation tests ==========

@override_settings(PASSWORD_HASHERS=FAST_HASHERS)
class LoginTests(TestCase):
    def setUp(self):
        self.user = create_test_user()
        self.query = '''
          mutation LoginMutation($email: String!, $password: String!) {
            login(email: $email, password: $password) {
              token
              user { id name }
            }
          }
        '''
        self.schema = graphene.Schema(query=Query, mutation=Mutation)

    def test_login(self):
        """normal user login"""
        variables = {'email': self.user.email, 'password': 'abc123'}
        expected = {
            'login': {
                'token': 'REDACTED',
                'user': {
                    'id': str(self.user.pk),
                    'name': self.user.name,
                }
            }
        }
        result = self.schema.execute(self.query, variable_values=variables,
                                     context_value=make_context())
        self.assertIsNone(result.errors, msg=format_graphql_errors(result.errors))
        try:
            token = result.data['login']['token']
            result.data['login']['token'] = 'REDACTED'
        except KeyError:
            raise Exception('malformed mutation result')
        self.assertEqual(result.data, expected, msg='\n'+repr(expected)+'\n'+repr(result.data))
        self.assertEqual(TokenService.from_settings().verify(token), self.user.pk)

    def test_login_not_found(self):
        """unsuccessful login: user not found"""
        variables = {'email': 'xxx' + self.user.email, 'password': 'irrelevant'}
        result = self.schema.execute(self.query, variable_values=variables,
                                     context_value=make_context())
        self.assertEqual(error_codes(result.errors), ['INVALID_CREDENTIALS'])
        self.assertEqual(result.data, {'login': None})

    def test_login_bad_password(self):
        """unsuccessful login: incorrect password, reported exactly like an unknown email"""
        variables = {'email': self.user.email, 'password': 'xxxabc123'}
        result = self.schema.execute(self.query, variable_values=variables,
                                     context_value=make_context())
        self.assertEqual(error_codes(result.errors), ['INVALID_CREDENTIALS'])
        self.assertEqual(result.data, {'login': None})
        unknown = self.schema.execute(
            self.query, variable_values={'email': 'nobody@user.com', 'password': 'xxxabc123'},
            context_value=make_context())
        self.assertEqual(result.errors[0].message, unknown.errors[0].message)

    def test_signup_then_login(self):
        """the token from signup and the token from login both identify the new user"""
        signup = '''
          mutation {
            signup(email: "uhura@example.com", password: "hailing", name: "Nyota") {
              token
              user { id }
            }
          }
        '''
        result = self.schema.execute(signup, context_value=make_context())
        self.assertIsNone(result.errors, msg=format_graphql_errors(result.errors))
        user_id = int(result.data['signup']['user']['id'])
        tokens = TokenService.from_settings()
        self.assertEqual(tokens.verify(result.data['signup']['token']), user_id)

        result = self.schema.execute(
            self.query, variable_values={'email': 'uhura@example.com', 'password': 'hailing'},
            context_value=make_context())
        self.assertIsNone(result.errors, msg=format_graphql_errors(result.errors))
        self.assertEqual(tokens.verify(result.data['login']['token']), user_id)
        self.assertEqual(result.data['login']['user']['id'], str(user_id))
