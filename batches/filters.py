import django_filters

from batches.models import BatchUpload, BatchUploadItem


class BatchUploadItemFilter(django_filters.FilterSet):
    status = django_filters.ChoiceFilter(choices=BatchUploadItem.Status.choices)
    nickname = django_filters.CharFilter(field_name="contributor_nickname", lookup_expr="icontains")
    case_number = django_filters.CharFilter(method="filter_case_number")
    unmapped = django_filters.BooleanFilter(field_name="user", lookup_expr="isnull")

    class Meta:
        model = BatchUploadItem
        fields = ["status", "month"]

    def filter_case_number(self, queryset, name, value):
        return queryset.filter(case_number=value) | queryset.filter(combined_case_number=value)


class BatchUploadFilter(django_filters.FilterSet):
    name = django_filters.CharFilter(lookup_expr="icontains")

    class Meta:
        model = BatchUpload
        fields = ["state"]
