from django import forms
from django.db.models import Max

from core.models import Menu
from core.services.menu_store import MenuLoadError, OrmMenuStore
from core.services.menu_tree import build_tree, is_descendant


class MenuForm(forms.ModelForm):
    sort_order = forms.IntegerField(min_value=0, required=False)

    class Meta:
        model = Menu
        fields = ["label", "label_localized", "href", "icon", "description", "parent", "sort_order", "is_active"]

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.fields["sort_order"].help_text = "Lower numbers appear first. Leave empty to append."
        self.fields["href"].help_text = "Target path, e.g. /case-management/cases"
        self.fields["href"].widget.attrs["list"] = "url-suggestions"
        if self.instance.pk:
            self.fields["parent"].queryset = Menu.objects.exclude(pk=self.instance.pk)

    def clean_href(self):
        href = (self.cleaned_data.get("href") or "").strip()
        if not href.startswith("/"):
            raise forms.ValidationError("The path must start with '/'.")
        return href

    def clean(self):
        cleaned = super().clean()
        parent = cleaned.get("parent")
        href = cleaned.get("href")

        if parent and self.instance.pk:
            try:
                forest = build_tree(OrmMenuStore().fetch_all())
            except MenuLoadError as e:
                self.add_error(None, str(e))
            else:
                if is_descendant(str(self.instance.pk), str(parent.pk), forest):
                    self.add_error("parent", "Cannot move a parent item into its own child.")

        if href:
            clash = Menu.objects.filter(href=href, parent=parent).exclude(pk=self.instance.pk)
            if clash.exists():
                self.add_error("href", f'A menu item with path "{href}" already exists under the same parent.')
        return cleaned

    def save(self, commit=True):
        menu = super().save(commit=False)
        if self.cleaned_data.get("sort_order") is None:
            siblings = Menu.objects.filter(parent=menu.parent).exclude(pk=menu.pk)
            top = siblings.aggregate(m=Max("sort_order"))["m"]
            menu.sort_order = 0 if top is None else top + 1
        if commit:
            menu.save()
        return menu
