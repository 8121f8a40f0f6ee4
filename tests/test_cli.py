"""
Tests for the command-line interface.

Only commands that need no LLM credentials are exercised.
"""

import json

from conftest import invoice_payload, make_invoice
from invoice_intake.output_handler import DatabaseHandler
from main import main, parse_arguments


class TestCli:

    def test_parse_list_options(self):
        args = parse_arguments(["list", "--page", "2", "--sort-by", "amount", "--sort-order", "asc"])

        assert args.command == "list"
        assert args.page == 2
        assert args.sort_by == "amount"

    def test_list_empty_store(self, tmp_path, capsys):
        code = main(["--database", str(tmp_path / "cli.db"), "list"])

        output = json.loads(capsys.readouterr().out)
        assert code == 0
        assert output["total"] == 0
        assert output["invoices"] == []

    def test_show_unknown_invoice(self, tmp_path, capsys):
        code = main(["--database", str(tmp_path / "cli.db"), "show", "missing-id"])

        assert code == 1
        assert "Error [not_found]" in capsys.readouterr().err

    def test_process_reports_rejections(self, tmp_path, capsys):
        picture = tmp_path / "picture.gif"
        picture.write_bytes(b"GIF89a")

        code = main([
            "--database", str(tmp_path / "cli.db"),
            "process", str(picture), str(tmp_path / "missing.pdf")
        ])

        entries = json.loads(capsys.readouterr().out)
        assert code == 1
        reasons = sorted(entry["error"]["reason"] for entry in entries)
        assert reasons == ["file_not_found", "invalid_upload"]

    def test_edit_stored_invoice(self, tmp_path, capsys):
        database = tmp_path / "cli.db"
        invoice = DatabaseHandler(database).insert(make_invoice())
        corrected = tmp_path / "corrected.json"
        corrected.write_text(json.dumps(invoice_payload(amount="$45.00", lineItems=[])), encoding="utf-8")

        code = main(["--database", str(database), "edit", invoice.id, "--data", str(corrected)])

        output = json.loads(capsys.readouterr().out)
        assert code == 0
        assert output["amount"] == 4500
        assert output["status"] == "edited"

    def test_stats(self, tmp_path, capsys):
        database = tmp_path / "cli.db"
        DatabaseHandler(database).insert(make_invoice())

        code = main(["--database", str(database), "stats"])

        output = json.loads(capsys.readouterr().out)
        assert code == 0
        assert output["invoice_count"] == 1
        assert output["average_cost"] == "0.025"
        assert output["session"]["invoices"] == 0
        assert output["session"]["cache"] == {"hits": 0, "misses": 0, "entries": 0}
