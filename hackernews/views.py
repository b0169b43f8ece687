# hackernews-graphql -- <project>/views.py
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

import logging
import time

from graphene_django.views import GraphQLView
from graphql import GraphQLError, OperationType, get_operation_ast, parse

from hackernews.conf import get_setting
from hackernews.context import RequestContext
from hackernews.errors import is_transient


logger = logging.getLogger(__name__)


def has_transient_errors(result):
    return bool(result is not None and result.errors
                and any(is_transient(e) for e in result.errors))


def is_query(query, operation_name=None):
    """True if the operation ``query`` selects is a read-only query.

    A mutation document may commit some fields before a later one fails, so only queries are
    ever executed more than once.
    """
    if not isinstance(query, str):
        return False
    try:
        document = parse(query)
    except GraphQLError:
        return False
    operation = get_operation_ast(document, operation_name)
    return operation is not None and operation.operation == OperationType.QUERY


def execute_with_retry(execute, attempts=None, backoff=None, sleep=time.sleep):
    """Call ``execute()`` until its ExecutionResult has no DataUnavailable error, at most
    ``attempts`` times, sleeping ``backoff``, 2 * ``backoff``, ... seconds in between.

    Only pass read-only work here; see is_query().
    """
    attempts = attempts or get_setting('DATA_RETRY_ATTEMPTS')
    backoff = get_setting('DATA_RETRY_BACKOFF') if backoff is None else backoff
    for attempt in range(1, attempts + 1):
        result = execute()
        if attempt == attempts or not has_transient_errors(result):
            return result
        delay = backoff * 2 ** (attempt - 1)
        logger.warning('data store unavailable (attempt %d of %d), retrying in %.2fs',
                       attempt, attempts, delay)
        sleep(delay)


class HackerNewsGraphQLView(GraphQLView):
    """graphene-django's GraphQL view, with a RequestContext per request and retries of
    transient data store failures in queries.
    """

    def get_context(self, request):
        return RequestContext.from_request(request)

    def execute_graphql_request(self, request, data, query, variables, operation_name,
                                show_graphiql=False):
        parent = super().execute_graphql_request
        if not is_query(query, operation_name):
            return parent(request, data, query, variables, operation_name, show_graphiql)
        return execute_with_retry(
            lambda: parent(request, data, query, variables, operation_name, show_graphiql)
        )
