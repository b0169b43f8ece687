# hackernews-graphql -- links/tests.py
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

import asyncio

from asgiref.sync import sync_to_async
from django.test import TestCase, TransactionTestCase, override_settings

import graphene

from hackernews.events import NEW_LINK, NEW_VOTE, EventChannel
from hackernews.schema import Mutation, Query, schema
from hackernews.utils import error_codes, format_graphql_errors
from links.models import LinkModel, VoteModel
from users.tests import FAST_HASHERS, create_test_user, make_context, token_for


class RecordingChannel(EventChannel):
    """An EventChannel that also remembers everything published to it."""
    def __init__(self):
        super().__init__()
        self.published = []

    def publish(self, topic, payload):
        self.published.append((topic, payload))
        super().publish(topic, payload)


def create_Link_orderBy_test_data():
    """Create three links whose url, description, and id orderings all differ."""
    LinkModel.objects.create(url='http://a.com', description='B: second letter')
    LinkModel.objects.create(url='http://c.com', description='A: first letter')
    LinkModel.objects.create(url='http://b.com', description='C: third letter')


POST_QUERY = '''
  mutation PostMutation($url: String!, $description: String!) {
    post(url: $url, description: $description) {
      id
      url
      description
      postedBy { id }
    }
  }
'''

VOTE_QUERY = '''
  mutation VoteMutation($linkId: ID!) {
    vote(linkId: $linkId) {
      link {
        id
        voteCount
      }
      user { id }
    }
  }
'''


# ========== GraphQL schema general tests ==========

class RootTests(TestCase):
    def test_root_types(self):
        """Make sure the root types are 'Query', 'Mutation' and 'Subscription'."""
        query = '''
          query RootQueryQuery {
            __schema {
              queryType { name }
              mutationType { name }
              subscriptionType { name }
            }
          }
        '''
        expected = {
            '__schema': {
                'queryType': {'name': 'Query'},
                'mutationType': {'name': 'Mutation'},
                'subscriptionType': {'name': 'Subscription'},
            }
        }
        result = schema.execute(query)
        self.assertIsNone(result.errors, msg=format_graphql_errors(result.errors))
        assert result.data == expected, '\n'+repr(expected)+'\n'+repr(result.data)

    def test_info(self):
        result = schema.execute('{ info }', context_value=make_context())
        self.assertIsNone(result.errors, msg=format_graphql_errors(result.errors))
        self.assertEqual(result.data, {'info': 'This is the API of a Hackernews Clone'})


# ========== feed query tests ==========

class FeedTests(TestCase):
    def setUp(self):
        self.schema = graphene.Schema(query=Query)

    def feed(self, args=''):
        query = '''
          query {
            feed%s {
              count
              links { url }
            }
          }
        ''' % args
        result = self.schema.execute(query, context_value=make_context())
        self.assertIsNone(result.errors, msg=format_graphql_errors(result.errors))
        return result.data['feed']

    def test_feed_empty(self):
        self.assertEqual(self.feed(), {'count': 0, 'links': []})

    def test_feed_all(self):
        """without arguments, all links in store order"""
        create_Link_orderBy_test_data()
        expected = {
            'count': 3,
            'links': [
                {'url': 'http://a.com'},
                {'url': 'http://c.com'},
                {'url': 'http://b.com'},
            ],
        }
        self.assertEqual(self.feed(), expected)

    def test_feed_order_by(self):
        create_Link_orderBy_test_data()
        def urls(order):
            return [l['url'] for l in self.feed('(orderBy: %s)' % order)['links']]
        self.assertEqual(urls('url_ASC'), ['http://a.com', 'http://b.com', 'http://c.com'])
        self.assertEqual(urls('url_DESC'), ['http://c.com', 'http://b.com', 'http://a.com'])
        self.assertEqual(urls('description_ASC'),
                         ['http://c.com', 'http://a.com', 'http://b.com'])
        self.assertEqual(urls('id_DESC'), ['http://b.com', 'http://c.com', 'http://a.com'])

    def test_feed_filter(self):
        """filter matches url or description, ignoring case"""
        create_Link_orderBy_test_data()
        self.assertEqual(self.feed('(filter: "c.com")'),
                         {'count': 1, 'links': [{'url': 'http://c.com'}]})
        self.assertEqual(self.feed('(filter: "THIRD")'),
                         {'count': 1, 'links': [{'url': 'http://b.com'}]})
        self.assertEqual(self.feed('(filter: "letter", orderBy: url_DESC)')['count'], 3)
        self.assertEqual(self.feed('(filter: "nothing like it")'), {'count': 0, 'links': []})


# ========== post mutation tests ==========

@override_settings(PASSWORD_HASHERS=FAST_HASHERS)
class PostTests(TestCase):
    def setUp(self):
        self.user = create_test_user()
        self.events = RecordingChannel()
        self.schema = graphene.Schema(query=Query, mutation=Mutation)
        self.variables = {'url': 'http://a.com', 'description': 'A'}

    def post(self, **context_kwargs):
        context = make_context(events=self.events, **context_kwargs)
        with self.captureOnCommitCallbacks(execute=True):
            return self.schema.execute(POST_QUERY, variable_values=self.variables,
                                       context_value=context)

    def test_post(self):
        """a logged-in user's link is created, returned, and published"""
        result = self.post(token=token_for(self.user))
        self.assertIsNone(result.errors, msg=format_graphql_errors(result.errors))
        link = LinkModel.objects.get()
        expected = {
            'post': {
                'id': str(link.pk),
                'url': 'http://a.com',
                'description': 'A',
                'postedBy': {'id': str(self.user.pk)},
            }
        }
        self.assertEqual(result.data, expected, msg='\n'+repr(expected)+'\n'+repr(result.data))
        self.assertEqual(link.posted_by, self.user)
        self.assertEqual(self.events.published, [(NEW_LINK, link)])

    def test_post_then_feed(self):
        result = self.post(token=token_for(self.user))
        self.assertIsNone(result.errors, msg=format_graphql_errors(result.errors))
        feed = self.schema.execute('{ feed { links { id url description } } }',
                                   context_value=make_context())
        self.assertIsNone(feed.errors, msg=format_graphql_errors(feed.errors))
        post = dict(result.data['post'])
        del post['postedBy']
        self.assertIn(post, feed.data['feed']['links'])

    def test_post_without_token(self):
        """post without an Authorization header creates and publishes nothing"""
        result = self.post()
        self.assertEqual(error_codes(result.errors), ['NOT_AUTHENTICATED'])
        self.assertEqual(result.data, {'post': None})
        self.assertFalse(LinkModel.objects.exists())
        self.assertEqual(self.events.published, [])

    def test_post_with_invalid_token(self):
        result = self.post(authorization='Bearer AbDbAbDbAbDbA')
        self.assertEqual(error_codes(result.errors), ['NOT_AUTHENTICATED'])
        self.assertFalse(LinkModel.objects.exists())
        self.assertEqual(self.events.published, [])

    def test_post_with_empty_token(self):
        result = self.post(authorization='Bearer ')
        self.assertEqual(error_codes(result.errors), ['MISSING_TOKEN'])
        self.assertFalse(LinkModel.objects.exists())

    def test_post_for_deleted_user(self):
        token = token_for(self.user)
        self.user.delete()
        result = self.post(token=token)
        self.assertEqual(error_codes(result.errors), ['NOT_AUTHENTICATED'])
        self.assertFalse(LinkModel.objects.exists())

    def test_bad_token_does_not_block_public_queries(self):
        result = self.schema.execute('{ info feed { count } }',
                                     context_value=make_context(authorization='Bearer junk'))
        self.assertIsNone(result.errors, msg=format_graphql_errors(result.errors))
        self.assertEqual(result.data['feed'], {'count': 0})


# ========== vote mutation tests ==========

@override_settings(PASSWORD_HASHERS=FAST_HASHERS)
class VoteTests(TestCase):
    def setUp(self):
        create_Link_orderBy_test_data()
        self.link = LinkModel.objects.order_by('id').last()
        self.user = create_test_user()
        self.events = RecordingChannel()
        self.schema = graphene.Schema(query=Query, mutation=Mutation)

    def vote(self, link_id, token=None):
        context = make_context(token=token, events=self.events)
        with self.captureOnCommitCallbacks(execute=True):
            return self.schema.execute(VOTE_QUERY, variable_values={'linkId': link_id},
                                       context_value=context)

    def test_vote(self):
        """test normal vote creation, and that duplicate votes are not allowed"""
        result = self.vote(self.link.pk, token=token_for(self.user))
        self.assertIsNone(result.errors, msg=format_graphql_errors(result.errors))
        expected = {
            'vote': {
                'link': {
                    'id': str(self.link.pk),
                    'voteCount': 1,
                },
                'user': {'id': str(self.user.pk)},
            }
        }
        self.assertEqual(result.data, expected, msg='\n'+repr(expected)+'\n'+repr(result.data))
        vote = VoteModel.objects.get()
        self.assertEqual(self.events.published, [(NEW_VOTE, vote)])
        # verify that a second vote can't be created
        result = self.vote(self.link.pk, token=token_for(self.user))
        self.assertEqual(error_codes(result.errors), ['ALREADY_VOTED'])
        self.assertIn('vote already exists', result.errors[0].message)
        self.assertEqual(result.data, {'vote': None})
        self.assertEqual(VoteModel.objects.filter(user=self.user, link=self.link).count(), 1)
        self.assertEqual(len(self.events.published), 1)

    def test_votes_from_two_users(self):
        user2 = create_test_user(name='Another User', password='zyz987', email='ano@user.com')
        self.vote(self.link.pk, token=token_for(self.user))
        result = self.vote(self.link.pk, token=token_for(user2))
        self.assertIsNone(result.errors, msg=format_graphql_errors(result.errors))
        self.assertEqual(result.data['vote']['link']['voteCount'], 2)

    def test_vote_not_logged(self):
        """ensure vote with no logged user fails, before touching the link"""
        result = self.vote(self.link.pk)
        self.assertEqual(error_codes(result.errors), ['NOT_AUTHENTICATED'])
        self.assertEqual(result.data, {'vote': None})
        self.assertFalse(VoteModel.objects.exists())
        self.assertEqual(self.events.published, [])

    def test_vote_not_logged_bad_link(self):
        """authentication is checked first, so a bad link still reports NOT_AUTHENTICATED"""
        result = self.vote('nonsense')
        self.assertEqual(error_codes(result.errors), ['NOT_AUTHENTICATED'])

    def test_vote_bad_link(self):
        """ensure invalid linkId causes failure"""
        last_link_pk = LinkModel.objects.order_by('id').last().pk
        for link_id in (last_link_pk + 1, 'nonsense'):
            result = self.vote(link_id, token=token_for(self.user))
            self.assertEqual(error_codes(result.errors), ['LINK_NOT_FOUND'], msg=repr(link_id))
            self.assertIn('link not found', result.errors[0].message)
        self.assertFalse(VoteModel.objects.exists())

    def test_votes_on_link(self):
        """the votes field on Link lists who voted"""
        self.vote(self.link.pk, token=token_for(self.user))
        query = '''
          query {
            feed(orderBy: id_DESC) {
              links {
                voteCount
                votes { user { email } }
              }
            }
          }
        '''
        result = self.schema.execute(query, context_value=make_context())
        self.assertIsNone(result.errors, msg=format_graphql_errors(result.errors))
        links = result.data['feed']['links']
        self.assertEqual(links[0], {'voteCount': 1, 'votes': [{'user': {'email': self.user.email}}]})
        self.assertEqual(links[1], {'voteCount': 0, 'votes': []})


# ========== newLink subscription tests ==========

NEW_LINK_QUERY = '''
  subscription {
    newLink {
      id
      url
      description
    }
  }
'''


@override_settings(PASSWORD_HASHERS=FAST_HASHERS)
class NewLinkSubscriptionTests(TransactionTestCase):
    """Subscriptions run on an event loop while mutations run synchronously, so these tests use
    real commits (TransactionTestCase) and reach the ORM through sync_to_async.
    """

    async def set_up_user(self):
        self.events = EventChannel()
        self.user = await sync_to_async(create_test_user)()
        self.token = await sync_to_async(token_for)(self.user)

    async def post(self, url, description):
        context = make_context(token=self.token, events=self.events)
        result = await sync_to_async(schema.execute)(
            POST_QUERY,
            variable_values={'url': url, 'description': description},
            context_value=context,
        )
        self.assertIsNone(result.errors, msg=format_graphql_errors(result.errors))
        return result.data['post']

    async def subscribe(self, query=NEW_LINK_QUERY):
        context = make_context(events=self.events)
        return await schema.subscribe(query, context_value=context)

    async def test_subscriber_receives_new_link(self):
        await self.set_up_user()
        subscription = await self.subscribe()
        self.assertEqual(self.events.subscriber_count(NEW_LINK), 1)
        post = await self.post('http://a.com', 'A')
        item = await asyncio.wait_for(subscription.__anext__(), timeout=5)
        self.assertIsNone(item.errors, msg=format_graphql_errors(item.errors))
        self.assertEqual(item.data, {
            'newLink': {'id': post['id'], 'url': 'http://a.com', 'description': 'A'},
        })
        # exactly one payload per post
        with self.assertRaises(asyncio.TimeoutError):
            await asyncio.wait_for(subscription.__anext__(), timeout=0.2)
        await subscription.aclose()
        self.assertEqual(self.events.subscriber_count(NEW_LINK), 0)

    async def test_late_subscriber_gets_no_replay(self):
        await self.set_up_user()
        await self.post('http://a.com', 'A')
        subscription = await self.subscribe()
        with self.assertRaises(asyncio.TimeoutError):
            await asyncio.wait_for(subscription.__anext__(), timeout=0.2)
        await subscription.aclose()

    async def test_two_subscribers_in_order(self):
        await self.set_up_user()
        first = await self.subscribe()
        second = await self.subscribe()
        await self.post('http://a.com', 'A')
        await self.post('http://b.com', 'B')
        for subscription in (first, second):
            urls = []
            for _ in range(2):
                item = await asyncio.wait_for(subscription.__anext__(), timeout=5)
                urls.append(item.data['newLink']['url'])
            self.assertEqual(urls, ['http://a.com', 'http://b.com'])
            await subscription.aclose()
        self.assertEqual(self.events.subscriber_count(NEW_LINK), 0)

    async def test_failed_post_publishes_nothing(self):
        await self.set_up_user()
        subscription = await self.subscribe()
        result = await sync_to_async(schema.execute)(
            POST_QUERY,
            variable_values={'url': 'http://a.com', 'description': 'A'},
            context_value=make_context(events=self.events),
        )
        self.assertEqual(error_codes(result.errors), ['NOT_AUTHENTICATED'])
        with self.assertRaises(asyncio.TimeoutError):
            await asyncio.wait_for(subscription.__anext__(), timeout=0.2)
        await subscription.aclose()

    async def test_new_vote(self):
        await self.set_up_user()
        post = await self.post('http://a.com', 'A')
        subscription = await self.subscribe(
            'subscription { newVote { user { email } link { id voteCount votes { user { email } } } } }')
        self.assertEqual(self.events.subscriber_count(NEW_VOTE), 1)
        context = make_context(token=self.token, events=self.events)
        result = await sync_to_async(schema.execute)(
            VOTE_QUERY, variable_values={'linkId': post['id']}, context_value=context)
        self.assertIsNone(result.errors, msg=format_graphql_errors(result.errors))
        item = await asyncio.wait_for(subscription.__anext__(), timeout=5)
        self.assertIsNone(item.errors, msg=format_graphql_errors(item.errors))
        expected = {
            'newVote': {
                'user': {'email': self.user.email},
                'link': {
                    'id': post['id'],
                    'voteCount': 1,
                    'votes': [{'user': {'email': self.user.email}}],
                },
            }
        }
        self.assertEqual(item.data, expected, msg='\n'+repr(expected)+'\n'+repr(item.data))
        await subscription.aclose()

    async def test_new_link_payload_resolves_votes(self):
        """fields backed by other tables resolve in a subscription without touching the ORM"""
        await self.set_up_user()
        subscription = await self.subscribe('''
          subscription {
            newLink { id voteCount votes { id } postedBy { email } }
          }
        ''')
        post = await self.post('http://a.com', 'A')
        item = await asyncio.wait_for(subscription.__anext__(), timeout=5)
        self.assertIsNone(item.errors, msg=format_graphql_errors(item.errors))
        self.assertEqual(item.data, {
            'newLink': {
                'id': post['id'],
                'voteCount': 0,
                'votes': [],
                'postedBy': {'email': self.user.email},
            },
        })
        await subscription.aclose()
