"""Tests for the command-line entry point."""
from portfolio_engine.core.db import SnapshotStore, init_db
from portfolio_engine.main import main

CSV = """Name,Type,Quantity,Purchase Price,Current Price,Purchase Date
Apple,Stocks,10,150,170,2024-01-15
Broken,Stocks,-1,150,170,2024-01-15
"""


def test_import_then_report(tmp_path, capsys) -> None:
    db = str(tmp_path / "cli.duckdb")
    csv_path = tmp_path / "positions.csv"
    csv_path.write_text(CSV, encoding="utf-8")

    assert main(["--db", db, "import", str(csv_path)]) == 1
    out = capsys.readouterr().out
    assert "Imported 1 positions, skipped 1" in out
    assert "Row 2:" in out

    assert main(["--db", db, "breakdown"]) == 0
    out = capsys.readouterr().out
    assert "Net worth: 1,700.00 USD" in out
    assert "Stocks" in out

    assert main(["--db", db, "progress"]) == 0
    assert "No goals found." in capsys.readouterr().out

    assert main(["--db", db, "snapshot", "--date", "2024-06-30"]) == 0
    assert "Recorded net worth 1,700.00" in capsys.readouterr().out

    conn = init_db(db)
    try:
        assert len(SnapshotStore(conn).list(1)) == 1
    finally:
        conn.close()


def test_other_user_sees_nothing(tmp_path, capsys) -> None:
    db = str(tmp_path / "cli.duckdb")
    assert main(["--db", db, "--user", "2", "breakdown"]) == 0
    assert "Net worth: 0.00 USD" in capsys.readouterr().out
