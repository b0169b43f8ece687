# hackernews-graphql -- links/filters.py
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

import django_filters
from django.db.models import Q

from links.models import LinkModel


class LinkFilterSet(django_filters.FilterSet):
    """Narrows and orders the feed.

    ``search`` keeps links whose url or description contains the text, ignoring case. ``order_by``
    takes the Django ordering names that the LinkOrderBy enum translates to, e.g. '-created_at'.
    """
    search = django_filters.CharFilter(method='filter_search')
    order_by = django_filters.OrderingFilter(
        fields=('created_at', 'description', 'id', 'url'),
    )

    class Meta:
        model = LinkModel
        fields = []

    def filter_search(self, queryset, name, value):
        return queryset.filter(Q(url__icontains=value) | Q(description__icontains=value))
