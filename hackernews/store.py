# hackernews-graphql -- <project>/store.py
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

"""The data access facade: every read and write the resolvers make goes through DataAccess.

Database failures other than integrity errors come out as DataUnavailable, which the gateway may
retry. Each create runs in its own transaction, and an ``on_commit`` callback passed to it only
runs once that transaction has committed.
"""

import functools
import logging

from django.db import DatabaseError, IntegrityError, transaction
from django.db.models import Count

from hackernews.errors import AlreadyVoted, DataUnavailable, LoginTaken
from links.filters import LinkFilterSet
from links.models import LinkModel, VoteModel
from users.models import UserModel


logger = logging.getLogger(__name__)


def data_access(method):
    """Translate unexpected database errors raised by ``method`` into DataUnavailable."""
    @functools.wraps(method)
    def wrapper(*args, **kwargs):
        try:
            return method(*args, **kwargs)
        except IntegrityError:
            raise
        except DatabaseError as exc:
            logger.warning('%s failed: %s', method.__name__, exc)
            raise DataUnavailable() from exc
    return wrapper


def _after_commit(on_commit, instance):
    if on_commit is not None:
        transaction.on_commit(functools.partial(on_commit, instance))


class DataAccess(object):

    # ---------- links ----------

    @data_access
    def create_link(self, url, description, posted_by=None, on_commit=None):
        with transaction.atomic():
            link = LinkModel.objects.create(url=url, description=description,
                                            posted_by=posted_by)
            _after_commit(on_commit, link)
        return link

    @data_access
    def find_links(self, filters=None):
        """Return links in store order, or as narrowed and ordered by LinkFilterSet ``filters``."""
        qs = LinkModel.objects.select_related('posted_by')
        if filters:
            filterset = LinkFilterSet(data=filters, queryset=qs)
            qs = filterset.qs
        return list(qs)

    @data_access
    def get_link(self, link_id):
        try:
            return LinkModel.objects.get(pk=int(link_id))
        except (LinkModel.DoesNotExist, TypeError, ValueError):
            return None

    @data_access
    def load_link(self, link_id):
        """Return the link with its poster, its votes and their users already fetched, and a
        ``vote_count`` annotation, or None. Subscription payloads are resolved on the event loop,
        where the ORM cannot be queried.
        """
        return (LinkModel.objects.select_related('posted_by')
                .annotate(vote_count=Count('votes'))
                .prefetch_related('votes__user')
                .filter(pk=link_id)
                .first())

    # ---------- users ----------

    @data_access
    def create_user(self, email, password, name=''):
        """Create a user; ``password`` must already be a hasher digest."""
        try:
            with transaction.atomic():
                return UserModel.objects.create(email=email, password=password, name=name)
        except IntegrityError as exc:
            raise LoginTaken() from exc

    @data_access
    def find_user_by_email(self, email):
        return UserModel.objects.filter(email=email).first()

    @data_access
    def get_user(self, user_id):
        return UserModel.objects.filter(pk=user_id).first()

    # ---------- votes ----------

    @data_access
    def create_vote(self, user, link, on_commit=None):
        """Create the vote of ``user`` on ``link``; a second one raises AlreadyVoted."""
        try:
            with transaction.atomic():
                vote = VoteModel.objects.create(user=user, link=link)
                _after_commit(on_commit, vote)
        except IntegrityError as exc:
            raise AlreadyVoted() from exc
        return vote

    @data_access
    def load_vote(self, vote_id):
        """Like load_link(), for a vote: its user and its fully loaded link."""
        vote = VoteModel.objects.select_related('user').filter(pk=vote_id).first()
        if vote is not None:
            vote.link = self.load_link(vote.link_id)
        return vote

    @data_access
    def vote_exists(self, user_id, link_id):
        return VoteModel.objects.filter(user_id=user_id, link_id=link_id).exists()
