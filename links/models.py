from django.db import models


class LinkModel(models.Model):
    description = models.TextField(blank=True)
    url = models.URLField()
    created_at = models.DateTimeField(auto_now_add=True)
    posted_by = models.ForeignKey('users.UserModel', null=True, blank=True,
                                  on_delete=models.SET_NULL, related_name='links')

    def __str__(self):
        return self.url


class VoteModel(models.Model):
    user = models.ForeignKey('users.UserModel', on_delete=models.CASCADE, related_name='votes')
    link = models.ForeignKey('links.LinkModel', on_delete=models.CASCADE, related_name='votes')

    class Meta:
        # concurrent votes by one user on one link must not both succeed
        constraints = [
            models.UniqueConstraint(fields=['user', 'link'], name='unique_vote_per_user_link'),
        ]
