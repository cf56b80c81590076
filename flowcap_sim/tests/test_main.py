#!/usr/bin/env python3
"""
Command-line smoke tests over the seeded synthetic data source.
"""

import json

from flowcap_sim.main import main


class TestCommandLine:

    def test_no_command_prints_help(self, capsys):
        assert main([]) == 1
        assert "usage" in capsys.readouterr().out.lower()

    def test_lending_run_saved(self, tmp_path, capsys):
        code = main([
            "--results-dir", str(tmp_path), "lending",
            "--protocol", "venus", "--asset", "USDT", "--simulations", "100",
            "--harvest-days", "7", "--save",
        ])
        assert code == 0
        output = capsys.readouterr().out
        assert "synthetic" in output
        assert "Annualized APY" in output
        runs = list((tmp_path / "lending").iterdir())
        assert len(runs) == 1
        assert (runs[0] / "results.json").exists()
        assert (runs[0] / "summary.md").exists()

    def test_lp_json_output(self, capsys):
        code = main([
            "lp", "--pair", "USDT-WBNB", "--volume-24h", "50000", "--tvl", "1000000",
            "--simulations", "100", "--mu", "0.0", "--sigma", "0.02", "--json",
        ])
        assert code == 0
        payload = json.loads(capsys.readouterr().out)
        assert payload["num_simulations"] == 100
        assert "annualized_apy" in payload["extra_metrics"]

    def test_invalid_simulation_count_reported(self, capsys):
        code = main(["lending", "--simulations", "10"])
        assert code == 1
        assert "Error" in capsys.readouterr().out

    def test_scan_dry_run(self, capsys):
        code = main([
            "scan", "--risk-profile", "high", "--amount", "1000000", "--current-pool", "venus-usdc",
            "--current-apy", "0.0", "--days-held", "30", "--simulations", "100",
            "--execute-dry-run", "--json",
        ])
        assert code == 0
        output = capsys.readouterr().out
        payload = json.loads(output[output.index("{"):])
        assert payload["action"] == "reallocated"
        assert payload["details"]["plan"][0] == "withdraw"

    def test_list_results_empty(self, tmp_path, capsys):
        assert main(["--results-dir", str(tmp_path), "list-results", "lp"]) == 0
        assert "No saved lp runs" in capsys.readouterr().out

    def test_json_with_save_stays_parseable(self, tmp_path, capsys):
        code = main([
            "--results-dir", str(tmp_path), "lending",
            "--protocol", "venus", "--asset", "USDC", "--simulations", "100", "--json", "--save",
        ])
        assert code == 0
        captured = capsys.readouterr()
        payload = json.loads(captured.out)
        assert payload["num_simulations"] == 100
        assert "Results saved to" in captured.err
        assert len(list((tmp_path / "lending").iterdir())) == 1
