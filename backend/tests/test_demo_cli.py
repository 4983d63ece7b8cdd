"""Tests for the demo CLI."""

import demo_cli


class TestDemoCli:
    """Smoke tests for the demo scenarios."""

    def test_all_scenarios(self, capsys) -> None:
        """Test every scenario runs."""
        assert demo_cli.main([]) == 0
        out = capsys.readouterr().out
        assert "Adenosine" in out
        assert "STOP: 3 fluid boluses given without improvement" in out

    def test_list(self, capsys) -> None:
        """Test the protocol listing."""
        assert demo_cli.main(["--list"]) == 0
        assert "PR-DC-AMIO-CA-v1.0" in capsys.readouterr().out

    def test_single_drug(self, capsys) -> None:
        """Test evaluating one drug from the command line."""
        code = demo_cli.main(["--drug", "PR-DC-AMIO-CA-v1.0", "--age", "4", "--weight", "16", "--allergy", "Iodine"])
        assert code == 0
        assert "ALLERGY ALERT" in capsys.readouterr().out

    def test_unknown_drug(self, capsys) -> None:
        """Test unknown drugs exit with an error."""
        assert demo_cli.main(["--drug", "PR-DC-NOPE", "--age", "4", "--weight", "16"]) == 1
        assert "Unknown drug protocol" in capsys.readouterr().out
