from django.conf import settings
from django.db.models.signals import post_save
from django.dispatch import receiver

from .models import Donor

# ----------------- Create donor profile -----------------
@receiver(post_save, sender=settings.AUTH_USER_MODEL)
def create_profile_for_donor(sender, instance, created, **kwargs):
    if created and not instance.is_staff:
        Donor.objects.get_or_create(
            user=instance,
            defaults={'full_name': instance.get_full_name() or instance.get_username()},
        )
