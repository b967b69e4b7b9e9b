from django import forms

from .models import Program, FormField, Participant
from .utils.registration import CORE_FIELDS, with_unique_names


class ProgramDefaultsMixin:
    """Fill model defaults for keys a JSON payload leaves out."""

    defaults = {
        'program_type': Program.ProgramType.EVENT,
        'structure': Program.Structure.ONE_TIME,
        'cost': '0',
        'participants_count': 0,
        'startups_count': 0,
    }

    def __init__(self, data=None, *args, **kwargs):
        if data is not None:
            merged = {name: value for name, value in self.defaults.items() if name in self._meta.fields}
            merged.update({key: value for key, value in data.items() if value is not None})
            data = merged
        super().__init__(data, *args, **kwargs)


class ProgramForm(ProgramDefaultsMixin, forms.ModelForm):
    """Form for creating programs."""

    class Meta:
        model = Program
        fields = [
            'name', 'program_type', 'structure', 'description', 'course_title',
            'frequency', 'date', 'venue', 'cost', 'participants_count',
            'startups_count', 'flyer', 'proposal',
        ]

    def clean_cost(self):
        cost = self.cleaned_data.get('cost')
        if cost is not None and cost < 0:
            raise forms.ValidationError("Cost cannot be negative.")
        return cost


class VersionForm(ProgramDefaultsMixin, forms.ModelForm):
    """Form for scheduling a new version of a series master."""

    class Meta:
        model = Program
        fields = [
            'custom_suffix', 'date', 'description', 'venue', 'cost',
            'participants_count', 'flyer', 'proposal',
        ]


class ProgramEditForm(forms.ModelForm):
    """Form for editing program details. Structure cannot change after creation."""

    class Meta:
        model = Program
        fields = [
            'name', 'program_type', 'description', 'course_title', 'frequency',
            'date', 'venue', 'cost', 'amount_disbursed', 'participants_count',
            'startups_count', 'flyer', 'proposal',
        ]


class RegistrationSettingsForm(forms.Form):
    """Toggle and deadline are independent; only keys present in the payload change."""
    registration_open = forms.BooleanField(required=False)
    registration_deadline = forms.DateTimeField(required=False)

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.provided = set(self.data.keys()) & set(self.fields)

    def clean(self):
        cleaned_data = super().clean()
        if not self.provided:
            raise forms.ValidationError("Provide registration_open or registration_deadline.")
        return cleaned_data


class CompleteProgramForm(forms.Form):
    """Post-event report required to mark a program completed."""
    actual_attendance = forms.IntegerField(min_value=0)
    start_date = forms.DateTimeField()
    end_date = forms.DateTimeField()
    drive_link = forms.URLField(required=False, max_length=500)
    final_document = forms.CharField(required=False, max_length=500)

    def clean(self):
        cleaned_data = super().clean()
        start_date = cleaned_data.get('start_date')
        end_date = cleaned_data.get('end_date')

        if start_date and end_date and end_date < start_date:
            raise forms.ValidationError("End date cannot be before start date.")

        if not (cleaned_data.get('drive_link') or cleaned_data.get('final_document')):
            raise forms.ValidationError("Upload a report document or provide a media link.")

        return cleaned_data


class FormFieldForm(forms.ModelForm):
    """Form for one question in the registration form builder."""

    class Meta:
        model = FormField
        fields = ['label', 'field_type', 'required', 'options', 'order']

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.fields['options'].required = False
        self.fields['order'].required = False

    def clean_options(self):
        """Validate options field for select questions."""
        options = self.cleaned_data.get('options') or []
        field_type = self.cleaned_data.get('field_type')

        if field_type == FormField.FieldType.SELECT:
            if not isinstance(options, list) or not options:
                raise forms.ValidationError("Options are required for select questions.")
            options = [str(option).strip() for option in options if str(option).strip()]
            if not options:
                raise forms.ValidationError("Options are required for select questions.")
            return options
        return []

    def clean_order(self):
        return self.cleaned_data.get('order') or 0


class ParticipantForm(forms.ModelForm):
    """Manual participant entry by staff."""

    class Meta:
        model = Participant
        fields = [
            'full_name', 'email', 'phone', 'gender', 'age_group',
            'state', 'organization', 'referral_source',
        ]

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.fields['full_name'].required = False

    def clean(self):
        cleaned_data = super().clean()
        if not (cleaned_data.get('email') or cleaned_data.get('phone')):
            raise forms.ValidationError("Email or Phone is required")
        return cleaned_data


class ProgramUpdateForm(forms.Form):
    text = forms.CharField(max_length=5000)


class PublicRegistrationForm(forms.Form):
    """Dynamic registration form built from a program's effective schema."""

    full_name = forms.CharField(max_length=255)
    email = forms.EmailField(required=False)
    phone = forms.CharField(max_length=30, required=False)
    age_group = forms.ChoiceField(choices=[('', '')] + Participant.AGE_GROUP_CHOICES, required=False)
    referral_source = forms.CharField(max_length=255, required=False)
    consent = forms.BooleanField(required=False)

    def __init__(self, schema, *args, **kwargs):
        data = kwargs.get('data')
        if data is None and args:
            data = args[0]
            args = args[1:]
        schema = with_unique_names(schema)
        kwargs['data'] = self._normalize(schema, data)
        super().__init__(*args, **kwargs)
        self.schema = schema

        # Dynamically create form fields based on the schema
        for field_def in self.schema:
            if field_def.name in CORE_FIELDS:
                if field_def.required:
                    self.fields[field_def.name].required = True
                continue

            if field_def.field_type == 'textarea':
                field = forms.CharField(required=field_def.required, widget=forms.Textarea)
            elif field_def.field_type == 'number':
                field = forms.DecimalField(required=field_def.required)
            elif field_def.field_type == 'date':
                field = forms.DateField(required=field_def.required)
            elif field_def.field_type == 'select':
                choices = [(option, option) for option in field_def.options]
                field = forms.ChoiceField(choices=choices, required=field_def.required)
            elif field_def.field_type == 'file':
                # Uploaded file path from the file storage service
                field = forms.CharField(max_length=500, required=field_def.required)
            else:
                field = forms.CharField(max_length=1000, required=field_def.required)

            field.label = field_def.label
            self.fields[field_def.name] = field

    @staticmethod
    def _normalize(schema, data):
        """Accept answers keyed by field name or by label."""
        if data is None:
            return None
        normalized = {}
        for key in data:
            value = data.getlist(key) if hasattr(data, 'getlist') else data[key]
            if isinstance(value, list) and len(value) == 1:
                value = value[0]
            normalized[key] = value
        for field_def in schema:
            if field_def.name not in normalized and field_def.label in normalized:
                normalized[field_def.name] = normalized[field_def.label]
        if 'full_name' not in normalized and 'fullName' in normalized:
            normalized['full_name'] = normalized['fullName']
        return normalized

    def clean(self):
        cleaned_data = super().clean()
        if not (cleaned_data.get('email') or cleaned_data.get('phone')):
            raise forms.ValidationError("Please provide Email or Phone.")
        return cleaned_data

    def error_dict(self):
        errors = {}
        for key, messages in self.errors.items():
            name = 'non_field_errors' if key == forms.forms.NON_FIELD_ERRORS else key
            errors[name] = list(messages)
        return errors
