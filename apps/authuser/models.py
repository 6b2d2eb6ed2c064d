from django.contrib.auth.models import AbstractUser


class AuthUser(AbstractUser):
    @property
    def latest_dataset(self):
        return self.datasets.order_by("-uploaded_at", "-pk").first()

    @property
    def get_all_datasets(self):
        return self.datasets.prefetch_related("tiles").all()
