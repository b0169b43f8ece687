from django.db import models


# A deliberately small user model rather than django.contrib.auth's: the API identifies users by
# email address and a bearer token, and has no use for usernames, groups, or sessions. The password
# column holds a digest from Django's password hashers, never the password itself.

class UserModel(models.Model):
    name = models.CharField(max_length=150, blank=True)
    email = models.EmailField(unique=True)
    password = models.CharField(max_length=128)

    def __str__(self):
        return self.email
