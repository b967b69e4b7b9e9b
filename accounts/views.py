import logging

from django.conf import settings
from django.contrib.auth import get_user_model, update_session_auth_hash
from django.contrib.auth.forms import PasswordChangeForm
from django.contrib.auth.models import Group
from django.db import transaction
from django.db.models import Count
from django.http import JsonResponse
from django.shortcuts import get_object_or_404
from django.utils.crypto import get_random_string
from django.views.decorators.http import require_http_methods, require_GET, require_POST

from audit.models import ActivityLog
from audit.utils import log_activity
from communications.services import EmailService
from programs.views import serialize_program
from .forms import DepartmentForm, StaffInviteForm, ProfileForm, StaffMigrationForm
from .mixins import api_login_required, role_required, json_body
from .models import Department, ROLE_SUPER_ADMIN, ROLE_ADMIN, ROLE_STAFF
from .permissions import can_manage_departments, can_view_department

logger = logging.getLogger(__name__)
User = get_user_model()


def _errors(form):
    errors = {}
    for key, messages in form.errors.items():
        errors['non_field_errors' if key == '__all__' else key] = list(messages)
    return JsonResponse({'message': 'Validation failed', 'errors': errors}, status=400)


def _bad_json(e):
    return JsonResponse({'message': f'Invalid request body: {str(e)}'}, status=400)


def serialize_user(user):
    return {
        'id': user.pk,
        'email': user.email,
        'name': user.display_name,
        'first_name': user.first_name,
        'last_name': user.last_name,
        'position': user.position,
        'phone': user.phone,
        'gender': user.gender,
        'status': user.status,
        'roles': user.get_role_names(),
        'departments': [{'id': dept.pk, 'name': dept.name} for dept in user.departments.all()],
    }


def serialize_department(department, program_count=None, staff_count=None):
    if program_count is None:
        program_count = department.programs.count()
    if staff_count is None:
        staff_count = department.staff.count()
    return {
        'id': department.pk,
        'name': department.name,
        'description': department.description,
        'admin': serialize_user(department.admin) if department.admin else None,
        'program_count': program_count,
        'staff_count': staff_count,
        'has_admin': department.staff.filter(groups__name=ROLE_ADMIN).exists(),
        'created_at': department.created_at.isoformat(),
    }


@require_http_methods(["GET", "PUT"])
@api_login_required
def me(request):
    """The signed-in user's profile and effective role; PUT edits the profile."""
    actor = request.actor
    user = actor.user

    if request.method == 'PUT':
        try:
            payload = json_body(request)
        except ValueError as e:
            return _bad_json(e)
        # Fields left out of the body keep their current values
        data = {name: getattr(user, name) for name in ProfileForm.Meta.fields}
        data.update(payload)
        form = ProfileForm(data=data, instance=user)
        if not form.is_valid():
            return _errors(form)
        user = form.save()
        logger.info(f"User {user.pk} updated their profile")

    data = serialize_user(user)
    data['role'] = actor.role
    return JsonResponse(data)


@require_POST
@api_login_required
def change_password(request):
    """Change the signed-in user's password after checking the current one."""
    try:
        payload = json_body(request)
    except ValueError as e:
        return _bad_json(e)
    form = PasswordChangeForm(request.actor.user, data=payload)
    if not form.is_valid():
        return _errors(form)
    user = form.save()
    update_session_auth_hash(request, user)
    return JsonResponse({'message': 'Password updated successfully'})


@require_http_methods(["GET", "POST"])
@api_login_required
def department_list(request):
    """List departments with counts, or create one (super admin)."""
    actor = request.actor

    if request.method == 'POST':
        if not can_manage_departments(actor):
            return JsonResponse({'message': 'Access denied: Only a Super Admin can create departments'}, status=403)
        try:
            payload = json_body(request)
        except ValueError as e:
            return _bad_json(e)
        form = DepartmentForm(data=payload)
        if not form.is_valid():
            return _errors(form)
        department = form.save()

        # The head of department automatically joins it
        if department.admin:
            department.admin.departments.add(department)

        log_activity(
            actor.user,
            ActivityLog.Action.CREATE_DEPARTMENT,
            f"Created department: {department.name}",
            department=department,
        )
        logger.info(f"Department {department.pk} '{department.name}' created by {actor.user.email}")
        return JsonResponse(serialize_department(department, program_count=0), status=201)

    departments = Department.objects.select_related('admin').annotate(
        num_programs=Count('programs', distinct=True),
        num_staff=Count('staff', distinct=True),
    )
    if not actor.is_super_admin:
        departments = departments.filter(pk__in=actor.department_ids)

    return JsonResponse({'results': [
        serialize_department(dept, program_count=dept.num_programs, staff_count=dept.num_staff)
        for dept in departments
    ]})


@require_http_methods(["GET", "DELETE"])
@api_login_required
def department_detail(request, pk):
    """Department with its staff and programs; delete when it is empty."""
    actor = request.actor
    department = get_object_or_404(Department.objects.select_related('admin'), pk=pk)

    if request.method == 'DELETE':
        if not can_manage_departments(actor):
            return JsonResponse({'message': 'Access denied: Only a Super Admin can delete departments'}, status=403)

        has_staff = department.staff.exists()
        has_programs = department.programs.exists()
        if has_staff or has_programs:
            blockers = ' and '.join(
                label for label, present in (('Active Staff', has_staff), ('Programs', has_programs)) if present
            )
            return JsonResponse(
                {'message': f'Cannot delete: Department has {blockers}. Move them first.'},
                status=400
            )

        name = department.name
        department.delete()
        log_activity(actor.user, ActivityLog.Action.DELETE_DEPARTMENT, f"Deleted department: {name}")
        return JsonResponse({'message': 'Department deleted successfully'})

    if not can_view_department(actor, department):
        return JsonResponse({'message': 'Access denied: You are not a member of this department'}, status=403)

    programs = department.programs.select_related('department', 'created_by', 'parent_program')
    staff = department.staff.prefetch_related('groups', 'departments')
    return JsonResponse({
        'department': serialize_department(department),
        'staff': [serialize_user(user) for user in staff],
        'programs': [serialize_program(program) for program in programs],
    })


@require_POST
@role_required([ROLE_ADMIN])
def department_members(request, pk):
    """Add users to a department (``user_ids``) or remove one (``remove`` = user id)."""
    actor = request.actor
    department = get_object_or_404(Department, pk=pk)
    if not (actor.is_super_admin or actor.belongs_to(department.pk)):
        return JsonResponse({'message': 'You can only manage staff in your department.'}, status=403)

    try:
        payload = json_body(request)
    except ValueError as e:
        return _bad_json(e)

    if payload.get('remove'):
        user = get_object_or_404(User, pk=payload['remove'])
        user.departments.remove(department)
        return JsonResponse({'message': 'Staff removed from department'})

    user_ids = payload.get('user_ids')
    if not isinstance(user_ids, list) or not user_ids:
        return JsonResponse({'message': 'No users selected'}, status=400)
    users = User.objects.filter(pk__in=user_ids)
    for user in users:
        user.departments.add(department)
    return JsonResponse({'message': f'{users.count()} staff members added successfully.'})


@require_GET
@role_required([ROLE_ADMIN])
def staff_list(request):
    """All staff for super admins; staff of their own departments for admins."""
    actor = request.actor
    users = User.objects.prefetch_related('groups', 'departments').order_by('first_name', 'email')
    if not actor.is_super_admin:
        users = users.filter(departments__in=actor.department_ids).distinct()

    status = request.GET.get('status')
    if status:
        users = users.filter(status=status)

    return JsonResponse({'results': [serialize_user(user) for user in users]})


@require_POST
@role_required([ROLE_ADMIN])
def invite_staff(request):
    """
    Create a staff account with a temporary password and email the credentials.

    Admins can only add staff to their own departments, and each department
    has at most one Admin. Super Admin accounts cannot be created here.
    """
    actor = request.actor
    try:
        payload = json_body(request)
    except ValueError as e:
        return _bad_json(e)

    if payload.get('role') == ROLE_SUPER_ADMIN:
        return JsonResponse({'message': 'Action Forbidden: You cannot create a Super Admin.'}, status=403)

    form = StaffInviteForm(data=payload)
    if not form.is_valid():
        return _errors(form)

    departments = list(form.cleaned_data['departments'])
    if not actor.is_super_admin:
        if form.cleaned_data['role'] != ROLE_STAFF:
            return JsonResponse({'message': 'Admins can only add Staff accounts.'}, status=403)
        if any(not actor.belongs_to(dept.pk) for dept in departments):
            return JsonResponse({'message': 'You can only add staff to your own departments.'}, status=403)

    password = get_random_string(10)
    user = User.objects.create_user(
        email=form.cleaned_data['email'],
        password=password,
        first_name=form.cleaned_data['first_name'],
        last_name=form.cleaned_data['last_name'],
        position=form.cleaned_data['position'] or 'Staff Member',
    )
    user.departments.set(departments)
    user.assign_role(form.cleaned_data['role'])
    logger.info(f"User {user.email} invited by {actor.user.email} as {form.cleaned_data['role']}")

    context = {
        'user': user,
        'password': password,
        'login_url': f"{getattr(settings, 'PUBLIC_BASE_URL', '').rstrip('/')}/login",
    }
    try:
        EmailService().send_templated_email(
            user.email,
            'Your Account Credentials',
            'accounts/emails/welcome.html',
            context,
        )
        message = 'User created and credentials sent to email!'
    except Exception as e:
        logger.error(f"Failed to send credentials to {user.email}: {str(e)}")
        message = f'User created, but email failed. Copy password: {password}'

    data = serialize_user(user)
    data['message'] = message
    return JsonResponse(data, status=201)


def _cannot_manage(actor, user):
    """403 response when an admin reaches outside their own staff, else None."""
    if actor.is_super_admin:
        return None
    if user.is_super_admin or user.is_app_admin:
        return JsonResponse({'message': 'Admins cannot manage other Admins.'}, status=403)
    user_departments = set(user.departments.values_list('pk', flat=True))
    if not user_departments.intersection(actor.department_ids):
        return JsonResponse({'message': 'You can only manage staff in your department.'}, status=403)
    return None


@require_POST
@role_required([ROLE_ADMIN])
def toggle_user_status(request, pk):
    """Suspend an active account or reactivate a suspended/pending one."""
    actor = request.actor
    user = get_object_or_404(User, pk=pk)

    if user.pk == actor.id:
        return JsonResponse({'message': 'You cannot change your own status.'}, status=400)

    denied = _cannot_manage(actor, user)
    if denied:
        return denied

    user.status = User.Status.SUSPENDED if user.status == User.Status.ACTIVE else User.Status.ACTIVE
    user.save(update_fields=['status'])
    logger.info(f"User {user.email} status set to {user.status} by {actor.user.email}")

    verb = 'Activated' if user.status == User.Status.ACTIVE else 'Suspended'
    return JsonResponse({'message': f'User {verb} successfully', 'status': user.status})


@require_http_methods(["DELETE"])
@role_required([ROLE_ADMIN])
def delete_user(request, pk):
    """Remove an account. Super Admins cannot be deleted."""
    actor = request.actor
    user = get_object_or_404(User, pk=pk)

    if user.is_super_admin:
        return JsonResponse({'message': 'Cannot delete Super Admin'}, status=400)
    if user.pk == actor.id:
        return JsonResponse({'message': 'You cannot delete your own account.'}, status=400)
    denied = _cannot_manage(actor, user)
    if denied:
        return denied
    # Programs keep their creator
    if user.created_programs.exists():
        return JsonResponse(
            {'message': 'Cannot delete: User has created programs. Suspend the account instead.'},
            status=400
        )

    email = user.email
    user.delete()
    log_activity(actor.user, ActivityLog.Action.DELETE_USER, f"Deleted user: {email}")
    logger.info(f"User {email} deleted by {actor.user.email}")
    return JsonResponse({'message': 'User removed successfully'})


@require_POST
@role_required([ROLE_ADMIN])
def migrate_staff(request, pk):
    """Move a user from ``from_department`` to ``to_department``."""
    actor = request.actor
    user = get_object_or_404(User, pk=pk)
    try:
        payload = json_body(request)
    except ValueError as e:
        return _bad_json(e)

    form = StaffMigrationForm(data=payload)
    if not form.is_valid():
        return _errors(form)
    source = form.cleaned_data['from_department']
    target = form.cleaned_data['to_department']

    if not actor.is_super_admin:
        if not (actor.belongs_to(source.pk) and actor.belongs_to(target.pk)):
            return JsonResponse({'message': 'You can only move staff between your own departments.'}, status=403)
        denied = _cannot_manage(actor, user)
        if denied:
            return denied
    if not user.departments.filter(pk=source.pk).exists():
        return JsonResponse({'message': f'{user.display_name} is not in {source.name}.'}, status=400)

    with transaction.atomic():
        user.departments.remove(source)
        user.departments.add(target)
        if source.admin_id == user.pk:
            source.admin = None
            source.save(update_fields=['admin', 'updated_at'])

    log_activity(
        actor.user,
        ActivityLog.Action.MIGRATE_STAFF,
        f"Moved {user.display_name} from {source.name} to {target.name}",
        department=target,
        meta={'user_id': user.pk, 'from_department': source.pk, 'to_department': target.pk},
    )
    return JsonResponse({'message': 'Staff migrated successfully', 'user': serialize_user(user)})


@require_http_methods(["PUT", "DELETE"])
@api_login_required
def department_admin(request, pk):
    """
    Make a user the department's Admin (PUT ``user_id``) or revoke it (DELETE).

    A department has at most one Admin. The appointed user joins the
    department and gains the Admin role; a revoked head who leads no other
    department goes back to Staff.
    """
    actor = request.actor
    if not can_manage_departments(actor):
        return JsonResponse({'message': 'Access denied: Only a Super Admin can appoint department heads'}, status=403)
    department = get_object_or_404(Department.objects.select_related('admin'), pk=pk)

    if request.method == 'PUT':
        try:
            payload = json_body(request)
        except ValueError as e:
            return _bad_json(e)
        user_id = payload.get('user_id')
        if not str(user_id or '').isdigit():
            return JsonResponse({'message': 'user_id is required'}, status=400)
        user = get_object_or_404(User, pk=int(user_id))
        if user.is_super_admin:
            return JsonResponse({'message': 'A Super Admin cannot head a department.'}, status=400)
        current = department.staff.filter(groups__name=ROLE_ADMIN).exclude(pk=user.pk).first()
        if current:
            return JsonResponse(
                {'message': f'{current.display_name} is already the Admin for {department.name}.'},
                status=400
            )

        with transaction.atomic():
            department.admin = user
            department.save(update_fields=['admin', 'updated_at'])
            user.departments.add(department)
            user.groups.remove(*Group.objects.filter(name=ROLE_STAFF))
            user.assign_role(ROLE_ADMIN)
        log_activity(
            actor.user,
            ActivityLog.Action.ASSIGN_ADMIN,
            f"Made {user.display_name} Admin of {department.name}",
            department=department,
            meta={'user_id': user.pk},
        )
        return JsonResponse({'message': 'Department admin assigned', 'department': serialize_department(department)})

    user = department.admin or department.staff.filter(groups__name=ROLE_ADMIN).first()
    if user is None:
        return JsonResponse({'message': f'{department.name} has no Admin.'}, status=400)

    with transaction.atomic():
        department.admin = None
        department.save(update_fields=['admin', 'updated_at'])
        if not Department.objects.filter(admin=user).exclude(pk=department.pk).exists():
            user.groups.remove(*Group.objects.filter(name=ROLE_ADMIN))
            user.assign_role(ROLE_STAFF)
    log_activity(
        actor.user,
        ActivityLog.Action.REVOKE_ADMIN,
        f"Revoked {user.display_name} as Admin of {department.name}",
        department=department,
        meta={'user_id': user.pk},
    )
    return JsonResponse({'message': 'Department admin revoked', 'department': serialize_department(department)})
