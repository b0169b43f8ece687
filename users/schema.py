# hackernews-graphql -- users/schema.py
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

import logging

import graphene
from graphene_django import DjangoObjectType

from hackernews.errors import InvalidCredentials, LoginTaken
from users.auth import burn_password_check, check_password, hash_password
from users.models import UserModel


logger = logging.getLogger(__name__)


class User(DjangoObjectType):
    class Meta:
        model = UserModel
        # never 'password'
        fields = ('id', 'name', 'email', 'links', 'votes')


class AuthPayload(graphene.ObjectType):
    token = graphene.String(required=True)
    user = graphene.Field(User, required=True)


class Query(object):
    pass


class Signup(graphene.Mutation):
    # mutation SignupMutation($email: String!, $password: String!, $name: String!) {
    #   signup(email: $email, password: $password, name: $name) {
    #     token
    #     user { id }
    #   }
    # }

    class Arguments:
        email = graphene.String(required=True)
        password = graphene.String(required=True)
        name = graphene.String()

    Output = AuthPayload

    def mutate(root, info, email, password, name=''):
        data = info.context.data
        # the unique constraint on email catches the race this check leaves open
        if data.find_user_by_email(email) is not None:
            raise LoginTaken()
        user = data.create_user(email=email, password=hash_password(password), name=name or '')
        logger.info('signed up user %s', user.pk)
        return AuthPayload(token=info.context.tokens.issue(user.pk), user=user)


class Login(graphene.Mutation):
    # mutation LoginMutation($email: String!, $password: String!) {
    #   login(email: $email, password: $password) {
    #     token
    #   }
    # }

    class Arguments:
        email = graphene.String(required=True)
        password = graphene.String(required=True)

    Output = AuthPayload

    def mutate(root, info, email, password):
        user = info.context.data.find_user_by_email(email)
        # Unknown email and wrong password fail the same way, in the same time.
        if user is None:
            burn_password_check(password)
            raise InvalidCredentials()
        if not check_password(password, user.password):
            raise InvalidCredentials()
        return AuthPayload(token=info.context.tokens.issue(user.pk), user=user)


class Mutation(object):
    signup = Signup.Field()
    login = Login.Field()
