from django.core.validators import MinValueValidator
from django.db import models
from .scoring import calculate_points


class Challenge(models.Model):
    """
    Challenge model representing CTF challenges of an event.
    Points decay linearly with each solve down to `min_points`.
    """
    DIFFICULTY_CHOICES = [
        ('EASY', 'Easy'),
        ('MEDIUM', 'Medium'),
        ('HARD', 'Hard'),
        ('EXPERT', 'Expert'),
    ]

    # Basic information
    event = models.ForeignKey('events_ctf.Event', on_delete=models.CASCADE, related_name='challenges')
    title = models.CharField(max_length=200, db_index=True)
    description = models.TextField()
    category = models.CharField(max_length=50, default='MISC', help_text="e.g. WEB, CRYPTO, FORENSICS")
    difficulty = models.CharField(
        max_length=20,
        choices=DIFFICULTY_CHOICES,
        default='MEDIUM',
        help_text="Challenge difficulty level"
    )

    flag = models.CharField(max_length=500, help_text="Flag in the form ctnft{...}")
    is_active = models.BooleanField(default=True, help_text="Challenge accepts submissions")

    # Scoring
    initial_points = models.PositiveIntegerField(
        default=100,
        validators=[MinValueValidator(1)],
        help_text="Points awarded to the first solver"
    )
    min_points = models.PositiveIntegerField(
        default=10,
        help_text="Points never decay below this value"
    )
    decay_factor = models.PositiveIntegerField(
        default=0,
        help_text="Points lost per previous solve"
    )
    solve_count = models.PositiveIntegerField(default=0, help_text="Number of successful solves")

    file = models.FileField(upload_to='challenges/files/', null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'challenges'
        verbose_name = 'Challenge'
        verbose_name_plural = 'Challenges'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['event', 'is_active'], name='challenges_event_active_idx'),
        ]

    def __str__(self):
        return f"{self.title} ({self.event.name})"

    def get_current_points(self):
        """Points the next solver would receive"""
        return calculate_points(self.initial_points, self.min_points, self.decay_factor, self.solve_count)
