import uuid

from django.core.validators import MinValueValidator
from django.db import models


class ActiveServiceManager(models.Manager):
    def get_queryset(self):
        return super().get_queryset().filter(is_active=True)


class Service(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    name = models.CharField(max_length=150)
    description = models.TextField(blank=True, default="")
    price = models.DecimalField(max_digits=10, decimal_places=2, validators=[MinValueValidator(0)])
    duration_minutes = models.PositiveIntegerField(default=60)
    category_id = models.CharField(max_length=64, blank=True, default="")
    image_url = models.URLField(blank=True, default="")
    is_active = models.BooleanField(default=True, db_index=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = models.Manager()
    active = ActiveServiceManager()

    class Meta:
        ordering = ("name",)

    def __str__(self):
        return self.name

    def to_dict(self) -> dict:
        return {
            "id": str(self.id),
            "name": self.name,
            "description": self.description,
            "price": str(self.price),
            "duration": self.duration_minutes,
            "durationMinutes": self.duration_minutes,
            "categoryId": self.category_id or None,
            "imageUrl": self.image_url or None,
            "isActive": self.is_active,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
            "updatedAt": self.updated_at.isoformat() if self.updated_at else None,
        }
