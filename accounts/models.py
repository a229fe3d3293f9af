from django.contrib.auth.models import AbstractUser
from django.db import models
from django.utils import timezone


class User(AbstractUser):
    """
    Custom User model extending Django's AbstractUser.
    Stores platform role, wallet address for NFT rewards and lifetime score.
    """
    ROLE_USER = 'USER'
    ROLE_ORGANIZER = 'ORGANIZER'
    ROLE_ADMIN = 'ADMIN'
    ROLE_CHOICES = [
        (ROLE_USER, 'User'),
        (ROLE_ORGANIZER, 'Organizer'),
        (ROLE_ADMIN, 'Admin'),
    ]

    email = models.EmailField(unique=True, blank=False)
    role = models.CharField(max_length=20, choices=ROLE_CHOICES, default=ROLE_USER, db_index=True)

    # Rewards
    wallet_address = models.CharField(
        max_length=42,
        unique=True,
        null=True,
        blank=True,
        help_text="Checksummed EVM wallet address that receives NFT rewards"
    )
    total_score = models.IntegerField(default=0, help_text="Points earned across all events")

    is_banned = models.BooleanField(default=False, help_text="User is banned from the platform")
    banned_at = models.DateTimeField(null=True, blank=True, help_text="When the user was banned")
    banned_reason = models.TextField(blank=True, help_text="Reason for banning")

    # Timestamps
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'users'
        verbose_name = 'User'
        verbose_name_plural = 'Users'
        ordering = ['-created_at']

    def __str__(self):
        return self.username

    def is_admin_role(self):
        """Admins are either role=ADMIN or Django staff"""
        return self.role == self.ROLE_ADMIN or self.is_staff

    def can_organize(self):
        return self.role == self.ROLE_ORGANIZER or self.is_admin_role()

    def ban(self, reason=""):
        """Ban the user"""
        self.is_banned = True
        self.banned_at = timezone.now()
        self.banned_reason = reason
        self.save()

    def unban(self):
        """Unban the user"""
        self.is_banned = False
        self.banned_at = None
        self.banned_reason = ""
        self.save()


class OrganizerRequest(models.Model):
    """
    A user's request to be promoted to the organizer role.
    Reviewed by an admin.
    """
    STATUS_PENDING = 'PENDING'
    STATUS_APPROVED = 'APPROVED'
    STATUS_REJECTED = 'REJECTED'
    STATUS_CHOICES = [
        (STATUS_PENDING, 'Pending'),
        (STATUS_APPROVED, 'Approved'),
        (STATUS_REJECTED, 'Rejected'),
    ]

    user = models.ForeignKey(User, on_delete=models.CASCADE, related_name='organizer_requests')
    subject = models.CharField(max_length=200)
    body = models.TextField()
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_PENDING, db_index=True)

    reviewer = models.ForeignKey(
        User,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='reviewed_organizer_requests'
    )
    review_notes = models.TextField(blank=True)
    reviewed_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'organizer_requests'
        verbose_name = 'Organizer Request'
        verbose_name_plural = 'Organizer Requests'
        ordering = ['-created_at']

    def __str__(self):
        return f"{self.user.username}: {self.subject} ({self.status})"

    def approve(self, reviewer, notes=''):
        """Approve the request and promote the user"""
        self.status = self.STATUS_APPROVED
        self.reviewer = reviewer
        self.review_notes = notes
        self.reviewed_at = timezone.now()
        self.save()

        if self.user.role == User.ROLE_USER:
            self.user.role = User.ROLE_ORGANIZER
            self.user.save(update_fields=['role'])

    def reject(self, reviewer, notes=''):
        """Reject the request"""
        self.status = self.STATUS_REJECTED
        self.reviewer = reviewer
        self.review_notes = notes
        self.reviewed_at = timezone.now()
        self.save()
