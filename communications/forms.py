from django import forms

from .models import BroadcastLog


class BroadcastForm(forms.Form):
    """Subject, message and audience of a broadcast email."""
    audience_type = forms.ChoiceField(choices=BroadcastLog.AudienceType.choices)
    subject = forms.CharField(max_length=255)
    message = forms.CharField()

    def clean_subject(self):
        subject = self.cleaned_data.get('subject', '').strip()
        if not subject:
            raise forms.ValidationError("Subject is required.")
        return subject
