from django.conf import settings
from django.urls import path
from django.views.decorators.csrf import csrf_exempt

from hackernews.views import HackerNewsGraphQLView


urlpatterns = [
    path('graphql/', csrf_exempt(HackerNewsGraphQLView.as_view(graphiql=settings.DEBUG))),
]
