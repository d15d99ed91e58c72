import decimal

import django.core.validators
import django.db.models.deletion
import django.utils.timezone
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Plan",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("name", models.CharField(max_length=255)),
                ("description", models.TextField(blank=True)),
                ("included_items", models.TextField(blank=True)),
                ("requirements", models.TextField(blank=True)),
                ("packing_list", models.TextField(blank=True)),
                ("capacity", models.PositiveIntegerField(help_text="Maximum participants at the same time.")),
                ("duration_days", models.PositiveIntegerField(default=1)),
                (
                    "total_price",
                    models.DecimalField(
                        decimal_places=2,
                        default=decimal.Decimal("0.00"),
                        max_digits=10,
                        validators=[django.core.validators.MinValueValidator(decimal.Decimal("0.00"))],
                    ),
                ),
                (
                    "difficulty",
                    models.CharField(
                        choices=[("easy", "Easy"), ("moderate", "Moderate"), ("hard", "Hard")],
                        default="moderate",
                        max_length=20,
                    ),
                ),
                ("is_public", models.BooleanField(default=False)),
                (
                    "status",
                    models.CharField(
                        choices=[("draft", "Draft"), ("active", "Active"), ("inactive", "Inactive")],
                        default="draft",
                        max_length=20,
                    ),
                ),
                ("primary_image", models.CharField(blank=True, max_length=255)),
                ("gallery_images", models.JSONField(blank=True, default=list)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "creator",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="created_plans",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "verbose_name": "Plan",
                "verbose_name_plural": "Plans",
                "ordering": ["name"],
                "indexes": [models.Index(fields=["status", "is_public"], name="plans_plan_status_public_idx")],
                "constraints": [
                    models.CheckConstraint(condition=models.Q(("capacity__gte", 1)), name="plans_plan_capacity_positive"),
                    models.CheckConstraint(condition=models.Q(("duration_days__gte", 1)), name="plans_plan_duration_positive"),
                ],
            },
        ),
        migrations.CreateModel(
            name="PlanDay",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("day_number", models.PositiveSmallIntegerField()),
                ("display_order", models.PositiveSmallIntegerField(default=0)),
                ("title", models.CharField(max_length=255)),
                ("description", models.TextField(blank=True)),
                ("start_time", models.TimeField()),
                ("end_time", models.TimeField()),
                ("estimated_duration_minutes", models.PositiveIntegerField()),
                ("notes", models.TextField(blank=True)),
                (
                    "plan",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="days",
                        to="plans.plan",
                    ),
                ),
            ],
            options={
                "verbose_name": "Plan day",
                "verbose_name_plural": "Plan days",
                "ordering": ["display_order", "day_number"],
                "constraints": [
                    models.UniqueConstraint(fields=("plan", "day_number"), name="plans_day_number_unique"),
                    models.CheckConstraint(condition=models.Q(("day_number__gte", 1)), name="plans_day_number_positive"),
                ],
            },
        ),
        migrations.CreateModel(
            name="PlanEnrollment",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("pending", "Pending"),
                            ("confirmed", "Confirmed"),
                            ("in_progress", "In progress"),
                            ("completed", "Completed"),
                            ("cancelled", "Cancelled"),
                        ],
                        default="pending",
                        max_length=20,
                    ),
                ),
                ("enrolled_at", models.DateTimeField(default=django.utils.timezone.now)),
                ("plan_start_date", models.DateField()),
                ("plan_end_date", models.DateField()),
                ("participant_count", models.PositiveIntegerField(default=1)),
                ("amount_paid", models.DecimalField(blank=True, decimal_places=2, max_digits=10, null=True)),
                (
                    "payment_method",
                    models.CharField(
                        blank=True,
                        choices=[
                            ("cash", "Cash"),
                            ("transfer", "Bank transfer"),
                            ("card", "Card"),
                            ("wallet_a", "Mobile wallet A"),
                            ("wallet_b", "Mobile wallet B"),
                        ],
                        max_length=20,
                    ),
                ),
                ("special_requirements", models.TextField(blank=True)),
                ("comments", models.TextField(blank=True)),
                ("user_notes", models.TextField(blank=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "plan",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="enrollments",
                        to="plans.plan",
                    ),
                ),
                (
                    "user",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="plan_enrollments",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "verbose_name": "Plan enrollment",
                "verbose_name_plural": "Plan enrollments",
                "ordering": ["-enrolled_at"],
                "indexes": [
                    models.Index(fields=["plan", "status"], name="plans_enroll_plan_status_idx"),
                    models.Index(
                        fields=["plan", "plan_start_date", "plan_end_date"],
                        name="plans_enroll_plan_dates_idx",
                    ),
                ],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(("participant_count__gte", 1)),
                        name="plans_enrollment_participants_positive",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(("plan_end_date__gte", models.F("plan_start_date"))),
                        name="plans_enrollment_valid_dates",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(
                            models.Q(("status", "pending"), _negated=True),
                            ("amount_paid__isnull", True),
                            _connector="OR",
                        ),
                        name="plans_enrollment_unpaid_while_pending",
                    ),
                ],
            },
        ),
    ]
