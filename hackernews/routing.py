from django.urls import path

from hackernews.consumers import GraphQLConsumer


# GraphQL subscriptions share the HTTP endpoint's path; the ASGI router tells them apart by
# protocol.
websocket_urlpatterns = [
    path('graphql/', GraphQLConsumer.as_asgi()),
]
