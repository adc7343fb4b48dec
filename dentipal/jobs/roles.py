"""Professional roles and the job/professional matching rule."""

from dataclasses import dataclass
from typing import Dict, List

# Matches any role, on either side of the comparison.
WILDCARD_ROLE = "dual_role_front_da"


@dataclass(frozen=True)
class ProfessionalRole:
    """A role a professional can hold and a job can require."""

    id: int
    name: str
    group: str  # Identity-provider group name
    value: str  # Stored value
    description: str


PROFESSIONAL_ROLES: List[ProfessionalRole] = [
    ProfessionalRole(
        1,
        "Associate Dentist",
        "AssociateDentist",
        "associate_dentist",
        "Licensed dentist providing dental care services",
    ),
    ProfessionalRole(
        2,
        "Dental Hygienist",
        "DentalHygienist",
        "dental_hygienist",
        "Licensed dental hygienist providing preventive care",
    ),
    ProfessionalRole(
        3,
        "Dental Assistant",
        "DentalAssistant",
        "dental_assistant",
        "Dental assistant providing chairside assistance",
    ),
    ProfessionalRole(
        4,
        "Expanded Functions DA",
        "ExpandedFunctionsDA",
        "expanded_functions_da",
        "Dental assistant with expanded functions certification",
    ),
    ProfessionalRole(
        5,
        "Dual Role (Front and DA)",
        "DualRoleFrontDA",
        WILDCARD_ROLE,
        "Professional handling both front desk and dental assistant duties",
    ),
    ProfessionalRole(
        6,
        "Patient Coordinator (Front)",
        "PatientCoordinatorFront",
        "patient_coordinator_front",
        "Front desk professional focused on patient coordination",
    ),
    ProfessionalRole(
        7,
        "Treatment Coordinator (Front)",
        "TreatmentCoordinatorFront",
        "treatment_coordinator_front",
        "Front desk professional focused on treatment coordination",
    ),
]

VALID_ROLE_VALUES: List[str] = [r.value for r in PROFESSIONAL_ROLES]

_BY_VALUE: Dict[str, ProfessionalRole] = {r.value: r for r in PROFESSIONAL_ROLES}


def is_valid_role(value: str) -> bool:
    return value in _BY_VALUE


def is_role_compatible(job_role: str, professional_role: str) -> bool:
    """Return True if a professional holding ``professional_role`` can work
    a job requiring ``job_role``.

    Equal roles match, and the dual front/DA role matches everything in
    both directions.
    """
    if job_role == professional_role:
        return True
    return job_role == WILDCARD_ROLE or professional_role == WILDCARD_ROLE
