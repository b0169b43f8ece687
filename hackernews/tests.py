# hackernews-graphql -- <project>/tests.py
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

import asyncio
import threading
from unittest import mock

from asgiref.sync import sync_to_async
from channels.testing import WebsocketCommunicator
from django.db import OperationalError
from django.test import SimpleTestCase, TestCase, TransactionTestCase, override_settings
from django.utils.datastructures import CaseInsensitiveMapping

from graphql import ExecutionResult, GraphQLError

from hackernews.context import RequestContext
from hackernews.errors import (AlreadyVoted, DataUnavailable, LinkNotFound, MissingToken,
                               NotAuthenticated, is_transient)
from hackernews.events import NEW_LINK, EventChannel, get_event_channel
from hackernews.schema import schema
from hackernews.store import DataAccess
from hackernews.utils import error_codes, format_graphql_errors
from hackernews.consumers import GraphQLConsumer
from hackernews.views import execute_with_retry, is_query
from links.models import LinkModel
from users.tests import FAST_HASHERS, create_test_user, make_context, token_for
from users.tokens import TokenService


# ========== event channel tests ==========

class EventChannelTests(SimpleTestCase):
    async def test_publish_without_subscribers(self):
        channel = EventChannel()
        channel.publish(NEW_LINK, 'nobody listens')
        self.assertEqual(channel.subscriber_count(NEW_LINK), 0)

    async def test_delivery_in_publish_order(self):
        channel = EventChannel()
        subscriber = channel.subscribe('T')
        for i in range(5):
            channel.publish('T', i)
        received = [await asyncio.wait_for(subscriber.__anext__(), timeout=1) for _ in range(5)]
        self.assertEqual(received, [0, 1, 2, 3, 4])
        await subscriber.aclose()

    async def test_topics_are_separate(self):
        channel = EventChannel()
        subscriber = channel.subscribe('T')
        channel.publish('U', 'other topic')
        channel.publish('T', 'mine')
        self.assertEqual(await asyncio.wait_for(subscriber.__anext__(), timeout=1), 'mine')
        await subscriber.aclose()

    async def test_no_replay(self):
        channel = EventChannel()
        channel.publish('T', 'too early')
        subscriber = channel.subscribe('T')
        channel.publish('T', 'on time')
        self.assertEqual(await asyncio.wait_for(subscriber.__anext__(), timeout=1), 'on time')
        await subscriber.aclose()

    async def test_every_subscriber_gets_one_copy(self):
        channel = EventChannel()
        subscribers = [channel.subscribe('T') for _ in range(3)]
        channel.publish('T', 'hello')
        for subscriber in subscribers:
            self.assertEqual(await asyncio.wait_for(subscriber.__anext__(), timeout=1), 'hello')
            with self.assertRaises(asyncio.TimeoutError):
                await asyncio.wait_for(subscriber.__anext__(), timeout=0.05)

    async def test_aclose_deregisters(self):
        channel = EventChannel()
        subscriber = channel.subscribe('T')
        self.assertEqual(channel.subscriber_count('T'), 1)
        await subscriber.aclose()
        self.assertEqual(channel.subscriber_count('T'), 0)
        with self.assertRaises(StopAsyncIteration):
            await subscriber.__anext__()

    async def test_close_wakes_waiting_reader(self):
        channel = EventChannel()
        subscriber = channel.subscribe('T')

        async def drain():
            return [payload async for payload in subscriber]

        task = asyncio.ensure_future(drain())
        await asyncio.sleep(0)
        channel.publish('T', 1)
        await asyncio.sleep(0.01)
        subscriber.close()
        self.assertEqual(await asyncio.wait_for(task, timeout=1), [1])

    async def test_cancellation_deregisters(self):
        channel = EventChannel()
        subscriber = channel.subscribe('T')
        task = asyncio.ensure_future(subscriber.__anext__())
        await asyncio.sleep(0)
        task.cancel()
        await asyncio.gather(task, return_exceptions=True)
        self.assertEqual(channel.subscriber_count('T'), 0)

    async def test_publish_from_another_thread(self):
        """mutations publish from worker threads"""
        channel = EventChannel()
        subscriber = channel.subscribe('T')
        thread = threading.Thread(target=channel.publish, args=('T', 'from a thread'))
        thread.start()
        thread.join()
        self.assertEqual(await asyncio.wait_for(subscriber.__anext__(), timeout=1),
                         'from a thread')
        await subscriber.aclose()

    def test_dead_subscriber_is_dropped(self):
        """subscribers whose event loop has gone away are removed on the next publish"""
        channel = EventChannel()

        async def subscribe():
            return channel.subscribe('T')

        loop = asyncio.new_event_loop()
        loop.run_until_complete(subscribe())
        loop.close()
        self.assertEqual(channel.subscriber_count('T'), 1)
        channel.publish('T', 'into the void')
        self.assertEqual(channel.subscriber_count('T'), 0)

    def test_process_wide_channel(self):
        self.assertIs(get_event_channel(), get_event_channel())


# ========== request context tests ==========

class RequestContextTests(SimpleTestCase):
    def setUp(self):
        self.tokens = TokenService('test-secret')

    def test_anonymous(self):
        context = RequestContext.from_headers({}, tokens=self.tokens)
        self.assertIsNone(context.identity)
        with self.assertRaises(NotAuthenticated):
            context.require_user_id()

    def test_authenticated(self):
        headers = {'Authorization': 'Bearer {}'.format(self.tokens.issue(9))}
        context = RequestContext.from_headers(headers, tokens=self.tokens)
        self.assertEqual(context.identity, 9)
        self.assertEqual(context.require_user_id(), 9)

    def test_bad_headers_fail_lazily(self):
        """building the context never fails; only require_user_id() does"""
        context = RequestContext.from_headers({'Authorization': 'Bearer '}, tokens=self.tokens)
        with self.assertRaises(MissingToken):
            context.require_user_id()
        context = RequestContext.from_headers({'Authorization': 'Bearer xyz'},
                                              tokens=self.tokens)
        self.assertIsNone(context.identity)
        with self.assertRaises(NotAuthenticated):
            context.require_user_id()

    def test_header_case(self):
        headers = CaseInsensitiveMapping({'authorization': 'Bearer {}'.format(self.tokens.issue(4))})
        context = RequestContext.from_headers(headers, tokens=self.tokens)
        self.assertEqual(context.identity, 4)

    def test_from_scope(self):
        scope = {'headers': [
            (b'host', b'testserver'),
            (b'authorization', 'Bearer {}'.format(self.tokens.issue(3)).encode('latin1')),
        ]}
        context = RequestContext.from_scope(scope, tokens=self.tokens)
        self.assertEqual(context.identity, 3)

    def test_injected_collaborators(self):
        events = EventChannel()
        data = DataAccess()
        context = RequestContext.from_headers({}, data=data, events=events, tokens=self.tokens)
        self.assertIs(context.events, events)
        self.assertIs(context.data, data)
        self.assertIs(context.tokens, self.tokens)


# ========== error tests ==========

class ErrorTests(SimpleTestCase):
    def test_kinds_and_messages(self):
        for error, code in ((NotAuthenticated(), 'NOT_AUTHENTICATED'),
                            (AlreadyVoted(), 'ALREADY_VOTED'),
                            (LinkNotFound('gone'), 'LINK_NOT_FOUND')):
            self.assertEqual(error.extensions, {'code': code})
            self.assertTrue(error.message)
        self.assertEqual(LinkNotFound('gone').message, 'gone')

    def test_transient(self):
        self.assertTrue(is_transient(DataUnavailable()))
        self.assertFalse(is_transient(AlreadyVoted()))
        wrapped = GraphQLError('x', original_error=DataUnavailable())
        self.assertTrue(is_transient(wrapped))
        self.assertEqual(wrapped.extensions, {'code': 'DATA_UNAVAILABLE'})


# ========== retry tests ==========

def transient_result():
    return ExecutionResult(data=None,
                           errors=[GraphQLError('down', original_error=DataUnavailable())])


class RetryTests(SimpleTestCase):
    def test_retries_then_succeeds(self):
        results = [transient_result(), transient_result(), ExecutionResult(data={'ok': 1})]
        sleeps = []
        result = execute_with_retry(lambda: results.pop(0), attempts=3, backoff=0.1,
                                    sleep=sleeps.append)
        self.assertEqual(result.data, {'ok': 1})
        self.assertEqual(sleeps, [0.1, 0.2])

    def test_gives_up(self):
        calls = []
        def execute():
            calls.append(1)
            return transient_result()
        result = execute_with_retry(execute, attempts=3, backoff=0, sleep=lambda s: None)
        self.assertEqual(len(calls), 3)
        self.assertEqual(error_codes(result.errors), ['DATA_UNAVAILABLE'])

    def test_caller_errors_are_not_retried(self):
        calls = []
        def execute():
            calls.append(1)
            return ExecutionResult(data=None,
                                   errors=[GraphQLError('no', original_error=AlreadyVoted())])
        execute_with_retry(execute, attempts=3, backoff=0, sleep=lambda s: None)
        self.assertEqual(len(calls), 1)

    def test_only_queries_are_retried(self):
        both = 'query A { info } mutation B { vote(linkId: "1") { id } }'
        self.assertTrue(is_query('{ info }'))
        self.assertTrue(is_query(both, 'A'))
        self.assertFalse(is_query(both, 'B'))
        self.assertFalse(is_query(both))
        self.assertFalse(is_query('mutation { post(url: "u", description: "d") { id } }'))
        self.assertFalse(is_query('subscription { newLink { id } }'))
        self.assertFalse(is_query('{ info'))
        self.assertFalse(is_query(None))


# ========== data access tests ==========

@override_settings(PASSWORD_HASHERS=FAST_HASHERS)
class DataAccessTests(TestCase):
    def setUp(self):
        self.data = DataAccess()
        self.user = create_test_user()

    def test_store_failure_is_data_unavailable(self):
        with mock.patch.object(LinkModel.objects, 'create',
                               side_effect=OperationalError('database is locked')):
            with self.assertRaises(DataUnavailable):
                self.data.create_link('http://a.com', 'A', posted_by=self.user)

    def test_vote_uniqueness(self):
        link = self.data.create_link('http://a.com', 'A')
        self.assertFalse(self.data.vote_exists(self.user.pk, link.pk))
        self.data.create_vote(self.user, link)
        self.assertTrue(self.data.vote_exists(self.user.pk, link.pk))
        with self.assertRaises(AlreadyVoted):
            self.data.create_vote(self.user, link)

    def test_lookups(self):
        self.assertEqual(self.data.find_user_by_email(self.user.email), self.user)
        self.assertIsNone(self.data.find_user_by_email('nobody@user.com'))
        self.assertEqual(self.data.get_user(self.user.pk), self.user)
        self.assertIsNone(self.data.get_link(12345))
        self.assertIsNone(self.data.get_link('abc'))

    def test_post_reports_data_unavailable(self):
        events = mock.Mock()
        context = make_context(token=token_for(self.user), events=events)
        query = 'mutation { post(url: "http://a.com", description: "A") { id } }'
        with mock.patch.object(LinkModel.objects, 'create',
                               side_effect=OperationalError('database is locked')):
            with self.captureOnCommitCallbacks(execute=True):
                result = schema.execute(query, context_value=context)
        self.assertEqual(error_codes(result.errors), ['DATA_UNAVAILABLE'])
        events.publish.assert_not_called()


# ========== HTTP gateway tests ==========

@override_settings(PASSWORD_HASHERS=FAST_HASHERS)
class GraphQLViewTests(TestCase):
    def graphql(self, query, token=None, variables=None):
        extra = {}
        if token:
            extra['HTTP_AUTHORIZATION'] = 'Bearer {}'.format(token)
        return self.client.post('/graphql/', {'query': query, 'variables': variables or {}},
                                content_type='application/json', **extra)

    def test_info(self):
        response = self.graphql('{ info }')
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), {'data': {'info': 'This is the API of a Hackernews Clone'}})

    def test_post_with_header(self):
        user = create_test_user()
        with self.captureOnCommitCallbacks(execute=True):
            response = self.graphql(
                'mutation { post(url: "http://a.com", description: "A") { url postedBy { id } } }',
                token=token_for(user))
        body = response.json()
        self.assertNotIn('errors', body)
        self.assertEqual(body['data']['post'], {'url': 'http://a.com',
                                                'postedBy': {'id': str(user.pk)}})

    def test_post_without_header(self):
        response = self.graphql('mutation { post(url: "http://a.com", description: "A") { id } }')
        body = response.json()
        self.assertEqual(body['data'], {'post': None})
        self.assertEqual(body['errors'][0]['extensions'], {'code': 'NOT_AUTHENTICATED'})
        self.assertFalse(LinkModel.objects.exists())

    @override_settings(HACKERNEWS={'DATA_RETRY_ATTEMPTS': 2, 'DATA_RETRY_BACKOFF': 0})
    def test_retries_transient_failures(self):
        with mock.patch('hackernews.store.DataAccess.find_links',
                        side_effect=[DataUnavailable(), []]) as find_links:
            response = self.graphql('{ feed { count } }')
        self.assertEqual(find_links.call_count, 2)
        self.assertEqual(response.json(), {'data': {'feed': {'count': 0}}})

    @override_settings(HACKERNEWS={'DATA_RETRY_ATTEMPTS': 3, 'DATA_RETRY_BACKOFF': 0})
    def test_mutation_runs_once(self):
        """a failing field does not make the fields before it run, and publish, again"""
        user = create_test_user()
        link = LinkModel.objects.create(url='http://b.com', description='B')
        query = ('mutation { a: post(url: "http://a.com", description: "A") { id } '
                 'b: vote(linkId: "%d") { id } }' % link.pk)
        events = mock.Mock()
        with mock.patch('hackernews.context.get_event_channel', return_value=events), \
                mock.patch('hackernews.store.DataAccess.create_vote',
                           side_effect=DataUnavailable()) as create_vote:
            with self.captureOnCommitCallbacks(execute=True):
                response = self.graphql(query, token=token_for(user))
        body = response.json()
        self.assertEqual(create_vote.call_count, 1)
        self.assertEqual(LinkModel.objects.filter(url='http://a.com').count(), 1)
        self.assertEqual(body['data']['b'], None)
        self.assertEqual(body['errors'][0]['extensions'], {'code': 'DATA_UNAVAILABLE'})
        self.assertEqual(events.publish.call_count, 1)


# ========== WebSocket gateway tests ==========

@override_settings(PASSWORD_HASHERS=FAST_HASHERS)
class GraphQLConsumerTests(TransactionTestCase):

    def communicator(self):
        from hackernews.asgi import application
        return WebsocketCommunicator(application, '/graphql/',
                                     subprotocols=['graphql-transport-ws'])

    async def connect(self):
        communicator = self.communicator()
        connected, subprotocol = await communicator.connect()
        self.assertTrue(connected)
        self.assertEqual(subprotocol, 'graphql-transport-ws')
        await communicator.send_json_to({'type': 'connection_init'})
        self.assertEqual(await communicator.receive_json_from(), {'type': 'connection_ack'})
        return communicator

    async def wait_for_subscribers(self, topic, count):
        channel = get_event_channel()
        for _ in range(200):
            if channel.subscriber_count(topic) == count:
                return
            await asyncio.sleep(0.01)
        self.fail('expected {} subscribers to {}, have {}'.format(
            count, topic, channel.subscriber_count(topic)))

    async def test_ping(self):
        communicator = await self.connect()
        await communicator.send_json_to({'type': 'ping'})
        self.assertEqual(await communicator.receive_json_from(), {'type': 'pong'})
        await communicator.disconnect()

    async def test_subscribe_before_init(self):
        communicator = self.communicator()
        await communicator.connect()
        await communicator.send_json_to({'id': '1', 'type': 'subscribe',
                                         'payload': {'query': '{ info }'}})
        output = await communicator.receive_output()
        self.assertEqual((output['type'], output.get('code')), ('websocket.close', 4401))
        await communicator.disconnect()

    async def test_subscribe_with_malformed_payload(self):
        communicator = await self.connect()
        await communicator.send_json_to({'id': '1', 'type': 'subscribe', 'payload': 'x'})
        output = await communicator.receive_output()
        self.assertEqual((output['type'], output.get('code')), ('websocket.close', 4400))
        await communicator.disconnect()

    async def test_subscribe_with_non_string_id(self):
        communicator = await self.connect()
        await communicator.send_json_to({'id': [1], 'type': 'subscribe',
                                         'payload': {'query': '{ info }'}})
        output = await communicator.receive_output()
        self.assertEqual((output['type'], output.get('code')), ('websocket.close', 4400))
        await communicator.disconnect()

    def test_finished_operation_leaves_newer_one_with_same_id(self):
        consumer = GraphQLConsumer()
        old, new = mock.Mock(), mock.Mock()
        consumer.operations = {'1': new}
        consumer.forget('1', old)
        self.assertEqual(consumer.operations, {'1': new})
        consumer.forget('1', new)
        self.assertEqual(consumer.operations, {})

    async def test_query_over_socket(self):
        communicator = await self.connect()
        await communicator.send_json_to({'id': '1', 'type': 'subscribe',
                                         'payload': {'query': '{ info }'}})
        self.assertEqual(await communicator.receive_json_from(timeout=5), {
            'id': '1', 'type': 'next',
            'payload': {'data': {'info': 'This is the API of a Hackernews Clone'}},
        })
        self.assertEqual(await communicator.receive_json_from(timeout=5),
                         {'id': '1', 'type': 'complete'})
        await communicator.disconnect()

    async def test_invalid_subscription(self):
        communicator = await self.connect()
        await communicator.send_json_to({'id': '1', 'type': 'subscribe',
                                         'payload': {'query': 'subscription { noSuchField }'}})
        message = await communicator.receive_json_from(timeout=5)
        self.assertEqual((message['id'], message['type']), ('1', 'error'))
        self.assertTrue(message['payload'])
        await communicator.disconnect()

    async def test_new_link_stream(self):
        """a socket subscriber sees a link posted elsewhere, and is deregistered on close"""
        user = await sync_to_async(create_test_user)()
        token = await sync_to_async(token_for)(user)
        communicator = await self.connect()
        await communicator.send_json_to({
            'id': 'feed', 'type': 'subscribe',
            'payload': {'query': 'subscription { newLink { url description } }'},
        })
        await self.wait_for_subscribers(NEW_LINK, 1)

        result = await sync_to_async(schema.execute)(
            'mutation { post(url: "http://a.com", description: "A") { id } }',
            context_value=make_context(token=token),
        )
        self.assertIsNone(result.errors, msg=format_graphql_errors(result.errors))
        self.assertEqual(await communicator.receive_json_from(timeout=5), {
            'id': 'feed', 'type': 'next',
            'payload': {'data': {'newLink': {'url': 'http://a.com', 'description': 'A'}}},
        })

        await communicator.disconnect()
        await self.wait_for_subscribers(NEW_LINK, 0)

    async def test_client_complete_stops_subscription(self):
        communicator = await self.connect()
        await communicator.send_json_to({
            'id': 'feed', 'type': 'subscribe',
            'payload': {'query': 'subscription { newLink { url } }'},
        })
        await self.wait_for_subscribers(NEW_LINK, 1)
        await communicator.send_json_to({'id': 'feed', 'type': 'complete'})
        await self.wait_for_subscribers(NEW_LINK, 0)
        await communicator.disconnect()
