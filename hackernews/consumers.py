# hackernews-graphql -- <project>/consumers.py
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

"""GraphQL over WebSocket, speaking the ``graphql-transport-ws`` protocol.

    client                          server
    connection_init          ->
                             <-     connection_ack
    subscribe {id, payload}  ->
                             <-     next {id, payload}      (once per event)
                             <-     error {id, payload}     (operation failed to start)
                             <-     complete {id}           (stream ended)
    complete {id}            ->                             (client stops one operation)
    ping                     ->
                             <-     pong

Subscriptions run on the event loop, iterating the EventChannel. Queries and mutations sent over
the socket run in a worker thread, since they reach the database through the Django ORM.
"""

import asyncio
import logging
from functools import partial

from channels.db import database_sync_to_async
from channels.generic.websocket import AsyncJsonWebsocketConsumer
from graphql import GraphQLError, OperationType, get_operation_ast, parse

from hackernews.context import RequestContext
from hackernews.views import execute_with_retry


logger = logging.getLogger(__name__)

SUBPROTOCOL = 'graphql-transport-ws'

CLOSE_BAD_REQUEST = 4400
CLOSE_UNAUTHORIZED = 4401
CLOSE_DUPLICATE_OPERATION = 4409
CLOSE_TOO_MANY_INIT = 4429


def get_schema():
    from hackernews.schema import schema
    return schema


class GraphQLConsumer(AsyncJsonWebsocketConsumer):

    async def connect(self):
        self.initialised = False
        self.operations = {}
        self.context = None
        if SUBPROTOCOL in self.scope.get('subprotocols', []):
            await self.accept(SUBPROTOCOL)
        else:
            await self.accept()
        logger.debug('websocket connected: %s', self.scope.get('client'))

    async def disconnect(self, code):
        logger.debug('websocket closed (%s), stopping %d operations', code, len(self.operations))
        await self.stop_all()

    async def receive_json(self, content, **kwargs):
        if not isinstance(content, dict):
            await self.close(code=CLOSE_BAD_REQUEST)
            return
        message_type = content.get('type')
        if message_type == 'connection_init':
            if self.initialised:
                await self.close(code=CLOSE_TOO_MANY_INIT)
                return
            self.initialised = True
            self.context = RequestContext.from_scope(self.scope)
            await self.send_json({'type': 'connection_ack'})
        elif message_type == 'ping':
            await self.send_json({'type': 'pong'})
        elif message_type == 'pong':
            pass
        elif message_type == 'subscribe':
            await self.start(content.get('id'), content.get('payload') or {})
        elif message_type == 'complete':
            await self.stop(content.get('id'))
        else:
            await self.close(code=CLOSE_BAD_REQUEST)

    # ---------- operations ----------

    async def start(self, op_id, payload):
        if not self.initialised:
            await self.close(code=CLOSE_UNAUTHORIZED)
            return
        if not isinstance(op_id, str) or not op_id or not isinstance(payload, dict) \
                or not isinstance(payload.get('query'), str):
            await self.close(code=CLOSE_BAD_REQUEST)
            return
        if op_id in self.operations:
            await self.close(code=CLOSE_DUPLICATE_OPERATION)
            return
        task = asyncio.ensure_future(self.run(op_id, payload))
        self.operations[op_id] = task
        task.add_done_callback(partial(self.forget, op_id))

    def forget(self, op_id, task):
        # the id may already belong to a newer operation
        if self.operations.get(op_id) is task:
            del self.operations[op_id]

    async def stop(self, op_id):
        task = self.operations.pop(op_id, None)
        if task is not None:
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)

    async def stop_all(self):
        tasks = list(self.operations.values())
        self.operations.clear()
        for task in tasks:
            task.cancel()
        # wait, so the subscriptions are deregistered before the consumer goes away
        await asyncio.gather(*tasks, return_exceptions=True)

    async def run(self, op_id, payload):
        query = payload['query']
        kwargs = {
            'variable_values': payload.get('variables'),
            'operation_name': payload.get('operationName'),
            'context_value': self.context,
        }
        try:
            document = parse(query)
        except GraphQLError as error:
            await self.send_error(op_id, [error])
            return
        operation = get_operation_ast(document, kwargs['operation_name'])
        schema = get_schema()

        if operation is None or operation.operation != OperationType.SUBSCRIPTION:
            execute = partial(schema.execute, query, **kwargs)
            if operation is not None and operation.operation == OperationType.QUERY:
                result = await database_sync_to_async(execute_with_retry)(execute)
            else:
                # a mutation runs once: fields before a failure may already be committed
                result = await database_sync_to_async(execute)()
            await self.send_json({'id': op_id, 'type': 'next', 'payload': result.formatted})
            await self.send_json({'id': op_id, 'type': 'complete'})
            return

        result = await schema.subscribe(query, **kwargs)
        if not hasattr(result, '__aiter__'):
            await self.send_error(op_id, result.errors)
            return
        try:
            async for item in result:
                await self.send_json({'id': op_id, 'type': 'next', 'payload': item.formatted})
        finally:
            await result.aclose()
        await self.send_json({'id': op_id, 'type': 'complete'})

    async def send_error(self, op_id, errors):
        await self.send_json({
            'id': op_id,
            'type': 'error',
            'payload': [error.formatted for error in errors or []],
        })
