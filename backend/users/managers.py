from django.contrib.auth.base_user import BaseUserManager


class CustomUserManager(BaseUserManager):
    """Accounts keyed by email; username and age are optional profile data."""

    def create_user(self, email, password, **extra_fields):
        if not email:
            raise ValueError('An email address is required')

        # Lower-cases the domain part only.
        user = self.model(email=self.normalize_email(email), **extra_fields)
        user.set_password(password)
        user.save(using=self._db)
        return user

    def create_superuser(self, email, password, **extra_fields):
        extra_fields.setdefault('is_staff', True)
        extra_fields.setdefault('is_superuser', True)
        extra_fields.setdefault('is_active', True)

        for flag in ('is_staff', 'is_superuser'):
            if extra_fields.get(flag) is not True:
                raise ValueError(f'Superuser must have {flag}=True.')
        return self.create_user(email, password, **extra_fields)

    def email_taken(self, email):
        """Case-insensitive check, so sign up cannot register the same address twice."""
        return self.filter(email__iexact=self.normalize_email(email)).exists()
