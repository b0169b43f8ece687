# hackernews-graphql -- links/schema.py
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

from hackernews.errors import DataUnavailable, LinkNotFound, NotAuthenticated
from hackernews.events import NEW_LINK, NEW_VOTE
from links.models import LinkModel, VoteModel
from users.schema import User  # noqa: F401 -- registers the type behind postedBy and Vote.user


logger = logging.getLogger(__name__)


def publish_loaded(context, topic, instance, load):
    """Publish ``instance`` on ``topic`` once it has been re-read with ``load``, so that every
    field a subscriber selects resolves without a query."""
    try:
        loaded = load(instance.pk)
    except DataUnavailable:
        loaded = None
    if loaded is None:
        logger.warning('publishing %s %s as created, without its votes', topic, instance.pk)
        loaded = instance
    context.events.publish(topic, loaded)


# ========== Vote ==========

class Vote(DjangoObjectType):
    class Meta:
        model = VoteModel
        fields = ('id', 'link', 'user')


class CreateVote(graphene.Mutation):
    # mutation VoteMutation($linkId: ID!) {
    #   vote(linkId: $linkId) {
    #     id
    #     link {
    #       voteCount
    #       votes { id user { id } }
    #     }
    #     user { id }
    #   }
    # }

    class Arguments:
        link_id = graphene.ID(required=True)

    Output = Vote

    def mutate(root, info, link_id):
        context = info.context
        user_id = context.require_user_id()
        user = context.data.get_user(user_id)
        if user is None:
            # a valid token for a user who no longer exists
            raise NotAuthenticated()
        link = context.data.get_link(link_id)
        if link is None:
            raise LinkNotFound()
        vote = context.data.create_vote(
            user, link,
            on_commit=lambda vote: publish_loaded(context, NEW_VOTE, vote, context.data.load_vote),
        )
        logger.info('user %s voted for link %s', user.pk, link.pk)
        return vote


# ========== Link ==========

class Link(DjangoObjectType):
    class Meta:
        model = LinkModel
        fields = ('id', 'url', 'description', 'created_at', 'posted_by', 'votes')

    votes = graphene.List(graphene.NonNull(Vote), required=True)
    vote_count = graphene.Int(required=True)

    def resolve_votes(parent, info):
        # all() reuses the prefetched votes of a loaded link
        return list(parent.votes.all())

    def resolve_vote_count(parent, info):
        count = getattr(parent, 'vote_count', None)
        if count is None:
            count = parent.votes.count()
        return count


class LinkOrderBy(graphene.Enum):
    """Feed orderings. The left-hand side is the enum value clients send, the right-hand side is
    the Django ordering that LinkFilterSet receives.
    """
    createdAt_ASC = 'created_at'
    createdAt_DESC = '-created_at'
    description_ASC = 'description'
    description_DESC = '-description'
    id_ASC = 'id'
    id_DESC = '-id'
    url_ASC = 'url'
    url_DESC = '-url'


class Feed(graphene.ObjectType):
    links = graphene.List(graphene.NonNull(Link), required=True)
    count = graphene.Int(required=True)


class Post(graphene.Mutation):
    # mutation PostMutation($url: String!, $description: String!) {
    #   post(url: $url, description: $description) {
    #     id
    #     createdAt
    #     url
    #     description
    #   }
    # }

    class Arguments:
        url = graphene.String(required=True)
        description = graphene.String(required=True)

    Output = Link

    def mutate(root, info, url, description):
        context = info.context
        user_id = context.require_user_id()
        user = context.data.get_user(user_id)
        if user is None:
            raise NotAuthenticated()
        link = context.data.create_link(
            url=url,
            description=description,
            posted_by=user,
            on_commit=lambda link: publish_loaded(context, NEW_LINK, link, context.data.load_link),
        )
        logger.info('user %s posted link %s', user.pk, link.pk)
        return link


# ========== schema structure ==========

class Query(object):
    info = graphene.String(required=True)
    feed = graphene.Field(
        Feed,
        required=True,
        filter=graphene.String(),
        order_by=graphene.Argument(LinkOrderBy),
    )

    def resolve_info(root, info):
        return 'This is the API of a Hackernews Clone'

    def resolve_feed(root, info, filter=None, order_by=None):
        filters = {}
        if filter:
            filters['search'] = filter
        if order_by:
            # graphene has already turned e.g. 'createdAt_DESC' into '-created_at'
            filters['order_by'] = getattr(order_by, 'value', order_by)
        links = info.context.data.find_links(filters)
        return Feed(links=links, count=len(links))


class Mutation(object):
    post = Post.Field()
    vote = CreateVote.Field()


class Subscription(object):
    # Subscriptions are public: no identity is required to watch the feed.
    # subscription { newLink { id url description postedBy { id name } } }
    new_link = graphene.Field(Link)
    new_vote = graphene.Field(Vote)

    def subscribe_new_link(root, info):
        return info.context.events.subscribe(NEW_LINK)

    def subscribe_new_vote(root, info):
        return info.context.events.subscribe(NEW_VOTE)
