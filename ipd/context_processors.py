from django.conf import settings

from .models import Admission


def hospital(request):
    context = {"hospital_name": settings.HOSPITAL_NAME}
    if request.user.is_authenticated:
        context["active_admissions"] = Admission.objects.filter(status=Admission.ACTIVE).count()
    return context
