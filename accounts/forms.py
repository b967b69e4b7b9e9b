from django import forms
from django.contrib.auth import get_user_model

from .models import Department, ROLE_ADMIN, ROLE_STAFF

User = get_user_model()


class DepartmentForm(forms.ModelForm):
    """Form for creating a department with an optional head."""

    class Meta:
        model = Department
        fields = ['name', 'description', 'admin']

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.fields['description'].required = False

    def clean_name(self):
        name = self.cleaned_data.get('name', '').strip()
        if not name:
            raise forms.ValidationError("Name is required")
        return name


class StaffInviteForm(forms.Form):
    """Form for adding a staff account; credentials are emailed to the new user."""
    ROLE_CHOICES = [
        (ROLE_STAFF, ROLE_STAFF),
        (ROLE_ADMIN, ROLE_ADMIN),
    ]

    email = forms.EmailField()
    first_name = forms.CharField(max_length=150, required=False)
    last_name = forms.CharField(max_length=150, required=False)
    role = forms.ChoiceField(choices=ROLE_CHOICES, required=False)
    position = forms.CharField(max_length=150, required=False)
    departments = forms.ModelMultipleChoiceField(queryset=Department.objects.all())

    def clean_email(self):
        email = self.cleaned_data['email']
        if User.objects.get_by_email_case_insensitive(email):
            raise forms.ValidationError("User with this email already exists")
        return email

    def clean_role(self):
        return self.cleaned_data.get('role') or ROLE_STAFF

    def clean(self):
        cleaned_data = super().clean()
        departments = cleaned_data.get('departments')
        if cleaned_data.get('role') == ROLE_ADMIN and departments:
            existing_admin = User.objects.filter(
                departments__in=departments,
                groups__name=ROLE_ADMIN,
            ).first()
            if existing_admin:
                raise forms.ValidationError(
                    f"{existing_admin.display_name} is already the Admin for one of these departments."
                )
        return cleaned_data


class ProfileForm(forms.ModelForm):
    """Self-service profile edit; completing the profile activates a pending account."""
    profile_complete = forms.BooleanField(required=False)

    class Meta:
        model = User
        fields = ['first_name', 'last_name', 'email', 'phone', 'gender']

    def clean_email(self):
        email = self.cleaned_data['email']
        existing = User.objects.get_by_email_case_insensitive(email)
        if existing and existing.pk != self.instance.pk:
            raise forms.ValidationError("This email is already in use by another account.")
        return email

    def save(self, commit=True):
        user = super().save(commit=False)
        if self.cleaned_data.get('profile_complete') and user.status == User.Status.PENDING:
            user.status = User.Status.ACTIVE
        if commit:
            user.save()
        return user


class StaffMigrationForm(forms.Form):
    """Move a staff member from one department to another."""
    from_department = forms.ModelChoiceField(queryset=Department.objects.all())
    to_department = forms.ModelChoiceField(queryset=Department.objects.all())

    def clean(self):
        cleaned_data = super().clean()
        source = cleaned_data.get('from_department')
        target = cleaned_data.get('to_department')
        if source and target and source == target:
            raise forms.ValidationError("Choose a different target department.")
        return cleaned_data
