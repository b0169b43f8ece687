# hackernews-graphql -- <project>/utils.py
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

import traceback

from graphql.error import GraphQLError


# ========== GraphQL error reporting ==========

# An ExecutionResult only carries GraphQLErrors; the exception a resolver actually raised, and its
# traceback, hang off each one as original_error. Test failure messages are much more useful with
# both, so format_graphql_errors() puts them in a single string.

def format_graphql_errors(errors):
    """Return a string with the usual exception traceback, plus some extra fields that GraphQL
    provides.
    """
    if not errors:
        return None
    text = []
    for i, e in enumerate(errors):
        text.append('GraphQL schema execution error [{}]:\n'.format(i))
        if isinstance(e, GraphQLError):
            for attr in ('message', 'locations', 'path', 'extensions'):
                value = getattr(e, attr, None)
                if value:
                    text.append('{}: {}\n'.format(attr, repr(value)))
            if e.source is not None:
                text.append('source: {}:{}\n'.format(e.source.name, e.source.body))
            original = e.original_error
            if original is not None:
                text.append(''.join(traceback.format_exception(
                    type(original), original, original.__traceback__)))
        elif isinstance(e, Exception):
            text.append(''.join(traceback.format_exception(type(e), e, e.__traceback__)))
        else:
            text.append(repr(e) + '\n')
    return ''.join(text)


def error_codes(errors):
    """Return the ``extensions.code`` of each error, in order."""
    return [(getattr(e, 'extensions', None) or {}).get('code') for e in errors or []]
