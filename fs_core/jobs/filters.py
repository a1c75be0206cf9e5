# fs_core/jobs/filters.py
import django_filters
from django.db.models import Q

from fs_core.jobs.models import Job, JobPriority, JobType
from fs_core.workflow.machines import JobStatus


class JobFilter(django_filters.FilterSet):
    status = django_filters.MultipleChoiceFilter(choices=JobStatus.choices)
    priority = django_filters.ChoiceFilter(choices=JobPriority.choices)
    job_type = django_filters.ChoiceFilter(choices=JobType.choices)
    customer_id = django_filters.UUIDFilter()
    quote = django_filters.UUIDFilter(field_name="quote_id")
    technician_id = django_filters.NumberFilter(field_name="assignments__technician_id", distinct=True)
    scheduled_from = django_filters.DateFilter(field_name="scheduled_date", lookup_expr="gte")
    scheduled_to = django_filters.DateFilter(field_name="scheduled_date", lookup_expr="lte")
    search = django_filters.CharFilter(method="filter_search")

    class Meta:
        model = Job
        fields = ["status", "priority", "job_type", "customer_id", "quote"]

    def filter_search(self, queryset, name, value):
        return queryset.filter(
            Q(job_number__icontains=value) | Q(customer_name__icontains=value) | Q(site_address__icontains=value)
        )
