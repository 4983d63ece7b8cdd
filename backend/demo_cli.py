#!/usr/bin/env python3
"""
Pediatric Safety Engine - Demo CLI

Walks through resuscitation scenarios and shows the safety checks,
doses and risk scores the engine produces.

Usage:
    python demo_cli.py                              # Run every scenario
    python demo_cli.py --scenario svt               # Run one scenario
    python demo_cli.py --drug PR-DC-AMIO-CA-v1.0 --age 4 --weight 16
    python demo_cli.py --list                       # List drug protocols
"""

import argparse
import sys

from app.core.errors import SafetyEngineError
from app.services.dose_calculator import calculate_defibrillation_energy, calculate_drug_dose
from app.services.encounter_checks import check_defibrillation_energy, check_fluid_bolus_count
from app.services.patient_state import PatientState, SafetyCheckResult, Severity, VitalSigns
from app.services.safety_guardrails import get_safety_evaluator
from app.services.vitals_risk import RiskLevel, assess_patient

# ============================================================================
# Terminal Output
# ============================================================================


class Colors:
    """ANSI color codes for terminal output."""
    HEADER = '\033[95m'
    CYAN = '\033[96m'
    GREEN = '\033[92m'
    YELLOW = '\033[93m'
    RED = '\033[91m'
    BOLD = '\033[1m'
    END = '\033[0m'
    GRAY = '\033[90m'


SEVERITY_COLORS = {
    Severity.HARD_BLOCK: Colors.RED,
    Severity.WARNING: Colors.YELLOW,
    Severity.CAUTION: Colors.CYAN,
    Severity.SAFE: Colors.GREEN,
}

RISK_COLORS = {
    RiskLevel.CRITICAL: Colors.RED,
    RiskLevel.HIGH: Colors.YELLOW,
    RiskLevel.MEDIUM: Colors.CYAN,
    RiskLevel.LOW: Colors.GREEN,
}


def print_header(text: str, char: str = "="):
    width = 70
    print(f"\n{Colors.BOLD}{Colors.HEADER}{char * width}{Colors.END}")
    print(f"{Colors.BOLD}{Colors.HEADER}{text.center(width)}{Colors.END}")
    print(f"{Colors.BOLD}{Colors.HEADER}{char * width}{Colors.END}")


def print_subheader(text: str):
    print(f"\n{Colors.BOLD}{Colors.CYAN}{text}{Colors.END}")
    print(f"{Colors.GRAY}{'-' * len(text)}{Colors.END}")


def print_item(label: str, value: str, indent: int = 2):
    print(f"{' ' * indent}{Colors.GRAY}{label}:{Colors.END} {value}")


def print_result(label: str, result: SafetyCheckResult):
    color = SEVERITY_COLORS[result.severity]
    print(f"  {label}: {color}{Colors.BOLD}{result.severity.value.upper()}{Colors.END} {result.message}")
    if result.rationale:
        print(f"    {Colors.GRAY}{result.rationale}{Colors.END}")
    if result.override is not None:
        print(f"    {Colors.GRAY}Override requires justification{Colors.END}")


# ============================================================================
# Scenarios
# ============================================================================

SCENARIOS = {
    "svt": {
        "title": "SVT in a 4-year-old on theophylline",
        "patient": PatientState(
            age=4,
            weight=16,
            current_medications=["Theophylline"],
            vital_signs=VitalSigns(heart_rate=240, respiratory_rate=32, oxygen_saturation=95),
        ),
        "drugs": [("PR-DC-ADEN-SVT-v1.0", None), ("PR-DC-ADEN-SVT-v1.0", "second")],
    },
    "anaphylaxis": {
        "title": "Anaphylaxis in a 7-year-old with an epinephrine allergy",
        "patient": PatientState(
            age=7,
            weight=24,
            allergies=["Epinephrine"],
            vital_signs=VitalSigns(heart_rate=150, systolic_bp=70, diastolic_bp=40, oxygen_saturation=89),
        ),
        "drugs": [("PR-DC-EPI-ANA-v1.0", None), ("PR-DC-HYDRO-ANA-v1.0", None)],
    },
    "arrest": {
        "title": "Cardiac arrest in an 18-month-old",
        "patient": PatientState(
            age=1.5,
            weight=11,
            vital_signs=VitalSigns(heart_rate=40, respiratory_rate=6, oxygen_saturation=70, temperature=34.5),
        ),
        "drugs": [("PR-DC-EPI-CA-v1.0", None), ("PR-DC-AMIO-CA-v1.0", None), ("PR-DC-ATRO-BRADY-v1.0", None)],
        "boluses": 3,
        "shocks": True,
    },
}


def show_drug(drug_id: str, variant: str | None, patient: PatientState):
    """Evaluate one drug and print its dose."""
    result = get_safety_evaluator().evaluate(drug_id, patient)
    dose = calculate_drug_dose(drug_id, patient.weight, variant)

    print_subheader(f"{dose.drug_name} ({dose.variant})")
    print_result("Safety", result)
    clamp_note = " (max dose)" if dose.clamped else " (min dose)" if dose.floored else ""
    print_item("Dose", f"{dose.dose:g} {dose.unit}{clamp_note}")
    print_item("Volume", f"{dose.volume_ml:g} mL {dose.route}")
    print_item("Concentration", dose.concentration)
    print_item("Reassess", dose.reassessment_timer)


def show_vitals(patient: PatientState):
    if patient.vital_signs is None:
        return
    record = assess_patient(patient.vital_signs, patient.age)
    color = RISK_COLORS[record.level]

    print_subheader("Deterioration risk")
    print_item("Score", f"{color}{Colors.BOLD}{record.score} {record.level.value}{Colors.END}")
    for factor in record.factors:
        print_item("Factor", factor, indent=4)


def run_scenario(name: str):
    scenario = SCENARIOS[name]
    patient: PatientState = scenario["patient"]

    print_header(scenario["title"])
    print_item("Age", f"{patient.age:g} years")
    print_item("Weight", f"{patient.weight:g} kg")

    show_vitals(patient)
    for drug_id, variant in scenario["drugs"]:
        show_drug(drug_id, variant, patient)

    if "boluses" in scenario:
        print_subheader("Fluid resuscitation")
        for bolus in range(1, scenario["boluses"] + 1):
            print_result(f"Bolus {bolus}", check_fluid_bolus_count(bolus, patient))

    if scenario.get("shocks"):
        print_subheader("Defibrillation")
        for initial in (True, False):
            energy = calculate_defibrillation_energy(patient.weight, is_initial_shock=initial)
            label = "Initial shock" if initial else "Subsequent shock"
            print_item(label, f"{energy.energy:g} J ({energy.j_per_kg:g} J/kg)")
            print_result("Check", check_defibrillation_energy(energy.energy, patient.weight))


def list_drugs():
    print_header("DRUG PROTOCOLS")
    for drug in get_safety_evaluator().list_drugs():
        print(f"  {Colors.BOLD}{drug['drug_id']:<26}{Colors.END} {drug['drug_name']}")
        print(f"  {' ' * 26} {Colors.GRAY}{drug['indication']}{Colors.END}")


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        description="Pediatric Safety Engine - Demo CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python demo_cli.py                                   # Run every scenario
  python demo_cli.py --scenario arrest                 # Run one scenario
  python demo_cli.py --drug PR-DC-AMIO-CA-v1.0 --age 4 --weight 16
  python demo_cli.py --list                            # List drug protocols
"""
    )
    parser.add_argument('--scenario', '-s', choices=sorted(SCENARIOS), help='Scenario to run')
    parser.add_argument('--list', '-l', action='store_true', help='List drug protocols')
    parser.add_argument('--drug', '-d', help='Drug protocol id to evaluate')
    parser.add_argument('--variant', help='Dosing variant (e.g. second, rectal)')
    parser.add_argument('--age', type=float, help='Patient age in years')
    parser.add_argument('--weight', type=float, help='Patient weight in kg')
    parser.add_argument('--allergy', action='append', default=[], help='Patient allergy (repeatable)')
    parser.add_argument('--medication', action='append', default=[], help='Current medication (repeatable)')
    parser.add_argument('--condition', action='append', default=[], help='Patient condition (repeatable)')

    args = parser.parse_args(argv)

    try:
        if args.list:
            list_drugs()
        elif args.drug:
            if args.age is None or args.weight is None:
                parser.error("--drug requires --age and --weight")
            patient = PatientState(
                age=args.age,
                weight=args.weight,
                allergies=args.allergy,
                current_medications=args.medication,
                conditions=args.condition,
            )
            print_header(f"EVALUATING {args.drug}")
            show_drug(args.drug, args.variant, patient)
        elif args.scenario:
            run_scenario(args.scenario)
        else:
            for name in SCENARIOS:
                run_scenario(name)
    except SafetyEngineError as e:
        print(f"{Colors.RED}Error: {e}{Colors.END}")
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
