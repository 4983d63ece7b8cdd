"""Tests for the safety API endpoints."""

import logging
from datetime import UTC, datetime, timedelta

import pytest
from httpx import AsyncClient


class TestEvaluateEndpoint:
    """Tests for POST /safety/evaluate."""

    @pytest.mark.asyncio
    async def test_inline_patient_safe(self, client: AsyncClient) -> None:
        """Test a safe evaluation with an inline patient."""
        response = await client.post(
            "/safety/evaluate",
            json={"drug_id": "PR-DC-AMIO-CA-v1.0", "patient": {"age": 5, "weight": 18}},
        )
        assert response.status_code == 200
        data = response.json()
        assert data["result"]["severity"] == "safe"
        assert data["result"]["allowed"] is True
        assert data["result"]["override"] is None
        assert data["findings"] == []

    @pytest.mark.asyncio
    async def test_allergy_hard_block(self, client: AsyncClient) -> None:
        """Test an allergy returns a hard-block without override."""
        response = await client.post(
            "/safety/evaluate",
            json={
                "drug_id": "PR-DC-AMIO-CA-v1.0",
                "patient": {"age": 5, "weight": 18, "allergies": ["Amiodarone"], "current_medications": ["Sotalol"]},
            },
        )
        data = response.json()
        assert data["result"]["severity"] == "hard-block"
        assert data["result"]["allowed"] is False
        assert data["result"]["override"] is None
        assert [f["severity"] for f in data["findings"]] == ["hard-block", "warning"]

    @pytest.mark.asyncio
    async def test_warning_has_override(self, client: AsyncClient) -> None:
        """Test a warning carries an override requiring justification."""
        response = await client.post(
            "/safety/evaluate",
            json={
                "drug_id": "PR-DC-ATRO-BRADY-v1.0",
                "patient": {"age": 2, "weight": 12, "vital_signs": {"temperature": 34.0}},
            },
        )
        data = response.json()
        assert data["result"]["severity"] == "warning"
        assert data["result"]["override"]["requires_justification"] is True

    @pytest.mark.asyncio
    async def test_stored_patient(self, client: AsyncClient) -> None:
        """Test evaluation against a stored patient."""
        await client.post(
            "/patients",
            json={"patient_id": "P001", "age": 4, "weight": 16, "conditions": ["Sick sinus syndrome"]},
        )
        response = await client.post(
            "/safety/evaluate",
            json={"drug_id": "PR-DC-ADEN-SVT-v1.0", "patient_id": "P001"},
        )
        assert response.status_code == 200
        assert response.json()["result"]["severity"] == "hard-block"

    @pytest.mark.asyncio
    async def test_unknown_stored_patient(self, client: AsyncClient) -> None:
        """Test unknown patient ids return 404."""
        response = await client.post(
            "/safety/evaluate",
            json={"drug_id": "PR-DC-ADEN-SVT-v1.0", "patient_id": "P404"},
        )
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_unknown_drug(self, client: AsyncClient) -> None:
        """Test unknown drugs return 404."""
        response = await client.post(
            "/safety/evaluate",
            json={"drug_id": "PR-DC-NOPE", "patient": {"age": 5, "weight": 18}},
        )
        assert response.status_code == 404
        assert "PR-DC-NOPE" in response.json()["detail"]

    @pytest.mark.asyncio
    async def test_missing_patient(self, client: AsyncClient) -> None:
        """Test a request without any patient is rejected."""
        response = await client.post("/safety/evaluate", json={"drug_id": "PR-DC-AMIO-CA-v1.0"})
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_invalid_weight(self, client: AsyncClient) -> None:
        """Test non-positive weight is rejected."""
        response = await client.post(
            "/safety/evaluate",
            json={"drug_id": "PR-DC-AMIO-CA-v1.0", "patient": {"age": 5, "weight": 0}},
        )
        assert response.status_code == 422


class TestDrugsEndpoint:
    """Tests for GET /safety/drugs."""

    @pytest.mark.asyncio
    async def test_lists_protocols(self, client: AsyncClient) -> None:
        """Test the catalog listing."""
        response = await client.get("/safety/drugs")
        assert response.status_code == 200
        drugs = response.json()
        assert len(drugs) == 10
        assert {"drug_id", "drug_name", "indication"} <= set(drugs[0])


class TestEncounterEndpoints:
    """Tests for the encounter check endpoints."""

    @pytest.mark.asyncio
    async def test_fluid_bolus(self, client: AsyncClient) -> None:
        """Test the third bolus is blocked."""
        response = await client.post("/safety/fluid-bolus", json={"bolus_number": 3})
        assert response.status_code == 200
        assert response.json()["severity"] == "hard-block"

    @pytest.mark.asyncio
    async def test_fluid_bolus_negative(self, client: AsyncClient) -> None:
        """Test negative counts are rejected."""
        response = await client.post("/safety/fluid-bolus", json={"bolus_number": -1})
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_epinephrine_interval(self, client: AsyncClient) -> None:
        """Test a 4-minute interval is safe."""
        now = datetime(2024, 3, 1, 12, 0, tzinfo=UTC)
        response = await client.post(
            "/safety/epinephrine-interval",
            json={"last_dose_at": (now - timedelta(minutes=4)).isoformat(), "now": now.isoformat()},
        )
        assert response.status_code == 200
        assert response.json()["severity"] == "safe"

    @pytest.mark.asyncio
    async def test_epinephrine_clock_skew_blocks(self, client: AsyncClient) -> None:
        """Test a last dose a few seconds ahead of the server clock still stops a repeat."""
        now = datetime(2024, 3, 1, 12, 0, tzinfo=UTC)
        response = await client.post(
            "/safety/epinephrine-interval",
            json={"last_dose_at": (now + timedelta(seconds=5)).isoformat(), "now": now.isoformat()},
        )
        assert response.status_code == 200
        assert response.json()["severity"] == "hard-block"
        assert response.json()["message"] == "STOP: Only 0 minutes since last epinephrine dose"

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "energy, severity",
        [(250, "hard-block"), (100, "hard-block"), (10, "warning"), (40, "safe")],
    )
    async def test_defibrillation(self, client: AsyncClient, energy: float, severity: str) -> None:
        """Test defibrillation energy classification for a 20 kg child."""
        response = await client.post(
            "/safety/defibrillation",
            json={"energy_joules": energy, "weight_kg": 20},
        )
        assert response.json()["severity"] == severity


class TestCalculatorEndpoints:
    """Tests for the dose and energy calculators."""

    @pytest.mark.asyncio
    async def test_dose(self, client: AsyncClient) -> None:
        """Test a weight-based dose."""
        response = await client.post("/safety/dose", json={"drug_id": "PR-DC-AMIO-CA-v1.0", "weight_kg": 20})
        assert response.status_code == 200
        data = response.json()
        assert data["dose"] == 100
        assert data["volume_ml"] == 2
        assert data["variant"] == "standard"
        assert data["clamped"] is False

    @pytest.mark.asyncio
    async def test_dose_variant(self, client: AsyncClient) -> None:
        """Test a dosing variant."""
        response = await client.post(
            "/safety/dose",
            json={"drug_id": "PR-DC-ADEN-SVT-v1.0", "weight_kg": 80, "variant": "second"},
        )
        data = response.json()
        assert data["dose"] == 12
        assert data["clamped"] is True
        assert data["max_dose"] == "12 mg"

    @pytest.mark.asyncio
    async def test_dose_includes_guidance(self, client: AsyncClient) -> None:
        """Test the dose response carries concentration, preparation and monitoring."""
        response = await client.post("/safety/dose", json={"drug_id": "PR-DC-EPI-CA-v1.0", "weight_kg": 10})
        data = response.json()
        assert data["dose"] == 0.1
        assert data["volume_ml"] == 1
        assert data["concentration"] == "0.1 mg/mL (1:10,000)"
        assert data["max_dose"] == "1 mg"
        assert len(data["reconstitution"]) == 4
        assert "Continuous cardiac rhythm monitoring" in data["monitoring"]
        assert data["contraindications"] == ["No absolute contraindications in cardiac arrest"]
        assert data["reassessment_timer"] == "Every 3-5 minutes"

    @pytest.mark.asyncio
    async def test_dose_unknown_variant(self, client: AsyncClient) -> None:
        """Test unknown variants are rejected."""
        response = await client.post(
            "/safety/dose",
            json={"drug_id": "PR-DC-ADEN-SVT-v1.0", "weight_kg": 20, "variant": "third"},
        )
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_dose_unknown_drug(self, client: AsyncClient) -> None:
        """Test unknown drugs return 404."""
        response = await client.post("/safety/dose", json={"drug_id": "PR-DC-NOPE", "weight_kg": 20})
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_defibrillation_energy(self, client: AsyncClient) -> None:
        """Test energy calculation."""
        response = await client.post(
            "/safety/defibrillation/energy",
            json={"weight_kg": 60, "is_initial_shock": False},
        )
        data = response.json()
        assert data["energy"] == 200
        assert data["clamped"] is True


class TestOverrideEndpoint:
    """Tests for POST /safety/overrides."""

    async def register(self, client: AsyncClient, patient_id: str, **fields) -> None:
        payload = {"patient_id": patient_id, "age": 5, "weight": 18, **fields}
        response = await client.post("/patients", json=payload)
        assert response.status_code == 201

    @pytest.mark.asyncio
    async def test_warning_override_recorded(self, client: AsyncClient, caplog) -> None:
        """Test a justified override of an interaction is written to the audit log."""
        await self.register(client, "P001", current_medications=["Sotalol"])

        with caplog.at_level(logging.INFO, logger="audit"):
            response = await client.post(
                "/safety/overrides",
                json={
                    "drug_id": "PR-DC-AMIO-CA-v1.0",
                    "justification": "Cardiology consulted, benefit outweighs risk",
                    "patient_id": "P001",
                    "user_id": "dr-smith",
                },
            )

        assert response.status_code == 201
        data = response.json()
        assert data["recorded"] is True
        assert data["severity"] == "warning"
        assert data["message"] == "INTERACTION: Sotalol detected"
        assert any("safety_override" in r.message for r in caplog.records)

    @pytest.mark.asyncio
    async def test_stored_hard_block_rejected(self, client: AsyncClient, caplog) -> None:
        """Test a drug the engine hard-blocks for a stored patient cannot be overridden."""
        await self.register(client, "P9", allergies=["Amiodarone"])
        evaluation = await client.post("/safety/evaluate", json={"drug_id": "PR-DC-AMIO-CA-v1.0", "patient_id": "P9"})
        assert evaluation.json()["result"]["severity"] == "hard-block"

        with caplog.at_level(logging.INFO, logger="audit"):
            response = await client.post(
                "/safety/overrides",
                json={
                    "drug_id": "PR-DC-AMIO-CA-v1.0",
                    "severity": "warning",
                    "message": "ALLERGY ALERT: Patient allergic to Amiodarone",
                    "justification": "Please",
                    "patient_id": "P9",
                },
            )

        assert response.status_code == 409
        assert "ALLERGY ALERT" in response.json()["detail"]
        assert not any("safety_override" in r.message for r in caplog.records)
        assert any("safety_block" in r.message for r in caplog.records)

    @pytest.mark.asyncio
    async def test_inline_hard_block_rejected(self, client: AsyncClient) -> None:
        """Test an inline patient with a contraindication is rejected."""
        response = await client.post(
            "/safety/overrides",
            json={
                "drug_id": "PR-DC-NS-BOLUS-v1.0",
                "justification": "Please",
                "patient": {"age": 5, "weight": 18, "conditions": ["Heart failure"]},
            },
        )
        assert response.status_code == 409

    @pytest.mark.asyncio
    async def test_safe_finding_rejected(self, client: AsyncClient) -> None:
        """Test a drug with no findings needs no override."""
        response = await client.post(
            "/safety/overrides",
            json={"drug_id": "PR-DC-AMIO-CA-v1.0", "justification": "x", "patient": {"age": 5, "weight": 18}},
        )
        assert response.status_code == 422

    @pytest.mark.asyncio
    @pytest.mark.parametrize("justification", ["", "   "])
    async def test_justification_required(self, client: AsyncClient, justification: str) -> None:
        """Test an empty justification is rejected."""
        response = await client.post(
            "/safety/overrides",
            json={
                "drug_id": "PR-DC-AMIO-CA-v1.0",
                "justification": justification,
                "patient": {"age": 15, "weight": 72},
            },
        )
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_patient_required_for_drug(self, client: AsyncClient) -> None:
        """Test a drug override needs a patient to recompute the finding."""
        response = await client.post(
            "/safety/overrides",
            json={"drug_id": "PR-DC-AMIO-CA-v1.0", "justification": "x"},
        )
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_unknown_patient(self, client: AsyncClient) -> None:
        """Test an unknown stored patient returns 404."""
        response = await client.post(
            "/safety/overrides",
            json={"drug_id": "PR-DC-AMIO-CA-v1.0", "justification": "x", "patient_id": "P404"},
        )
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_unknown_drug(self, client: AsyncClient) -> None:
        """Test an unknown drug returns 404."""
        response = await client.post(
            "/safety/overrides",
            json={"drug_id": "PR-DC-NOPE", "justification": "x", "patient": {"age": 5, "weight": 18}},
        )
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_encounter_warning_override(self, client: AsyncClient) -> None:
        """Test the second fluid bolus can be overridden with a justification."""
        response = await client.post(
            "/safety/overrides",
            json={
                "drug_id": "encounter:fluid-bolus",
                "bolus_number": 2,
                "justification": "Reassessed, no signs of overload",
            },
        )
        assert response.status_code == 201
        assert response.json()["message"] == "CAUTION: 2 fluid boluses given"

    @pytest.mark.asyncio
    async def test_encounter_hard_block_rejected(self, client: AsyncClient) -> None:
        """Test the third fluid bolus cannot be overridden whatever the client claims."""
        response = await client.post(
            "/safety/overrides",
            json={
                "drug_id": "encounter:fluid-bolus",
                "severity": "warning",
                "bolus_number": 3,
                "justification": "Still shocked",
            },
        )
        assert response.status_code == 409

    @pytest.mark.asyncio
    async def test_epinephrine_interval_recomputed(self, client: AsyncClient) -> None:
        """Test an epinephrine repeat inside 3 minutes is rejected, after 8 minutes recorded."""
        now = datetime(2024, 3, 1, 12, 0, tzinfo=UTC)
        early = await client.post(
            "/safety/overrides",
            json={
                "drug_id": "encounter:epinephrine-interval",
                "last_dose_at": (now - timedelta(minutes=1)).isoformat(),
                "now": now.isoformat(),
                "justification": "x",
            },
        )
        late = await client.post(
            "/safety/overrides",
            json={
                "drug_id": "encounter:epinephrine-interval",
                "last_dose_at": (now - timedelta(minutes=8)).isoformat(),
                "now": now.isoformat(),
                "justification": "Rhythm confirmed",
            },
        )
        assert early.status_code == 409
        assert late.status_code == 201
        assert late.json()["severity"] == "caution"

    @pytest.mark.asyncio
    async def test_defibrillation_uses_patient_weight(self, client: AsyncClient) -> None:
        """Test the defibrillation check falls back to the stored patient weight."""
        await self.register(client, "P002", weight=20)
        response = await client.post(
            "/safety/overrides",
            json={
                "drug_id": "encounter:defibrillation",
                "energy_joules": 10,
                "patient_id": "P002",
                "justification": "Only energy available on this device",
            },
        )
        assert response.status_code == 201
        assert response.json()["severity"] == "warning"

    @pytest.mark.asyncio
    async def test_encounter_inputs_required(self, client: AsyncClient) -> None:
        """Test encounter overrides need the check inputs."""
        response = await client.post(
            "/safety/overrides",
            json={"drug_id": "encounter:fluid-bolus", "justification": "x"},
        )
        assert response.status_code == 422
        assert "bolus_number" in response.json()["detail"]

    @pytest.mark.asyncio
    async def test_unknown_encounter_check(self, client: AsyncClient) -> None:
        """Test unknown encounter checks are rejected."""
        response = await client.post(
            "/safety/overrides",
            json={"drug_id": "encounter:intubation", "justification": "x"},
        )
        assert response.status_code == 422
