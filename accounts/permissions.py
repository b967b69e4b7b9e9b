"""
Permission helpers for program and department operations.

Every helper takes the request's Actor explicitly.
"""


def is_department_admin(actor, department_id):
    """Admin whose department set contains the given department."""
    return actor.is_admin and actor.belongs_to(department_id)


def can_create_program_in(actor, department_id):
    """Non super admins can only create programs for their own departments."""
    if actor.is_super_admin:
        return True
    return actor.belongs_to(department_id)


def can_review_program(actor, program):
    """Approve or reject: super admin, or an admin of the program's department."""
    if actor.is_super_admin:
        return True
    return is_department_admin(actor, program.department_id)


def can_change_status(actor, program):
    return can_review_program(actor, program)


def can_edit_program(actor, program):
    """Creator until the program is completed, or a department admin."""
    if actor.is_super_admin or is_department_admin(actor, program.department_id):
        return True
    from programs.models import Program
    return program.created_by_id == actor.id and program.status != Program.Status.COMPLETED


def can_manage_participants(actor, program):
    if actor.is_super_admin:
        return True
    return is_department_admin(actor, program.department_id)


def can_complete_program(actor, program):
    return can_manage_participants(actor, program)


def can_view_program(actor, program):
    """Staff see their departments' programs; admins and super admins too."""
    if actor.is_super_admin:
        return True
    return actor.belongs_to(program.department_id) or program.created_by_id == actor.id


def can_manage_departments(actor):
    return actor.is_super_admin


def can_view_department(actor, department):
    return actor.is_super_admin or actor.belongs_to(department.pk)


def can_view_finance(actor):
    return actor.is_super_admin or actor.is_admin


def can_view_activity(actor):
    return actor.is_super_admin or actor.is_admin
