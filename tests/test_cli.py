from pt2dump.cli import main, EXIT_OK, EXIT_FATAL, EXIT_TRUNCATED
from conftest import overflow, marker, photon

RECORDS = [photon(0, 10), overflow(), marker(1, 0x30), photon(1, 20)]


def test_cli_writes_dump(make_pt2, tmp_path, capsys):
    infile = make_pt2(RECORDS)
    outfile = tmp_path / "dump.txt"

    assert main([str(infile), str(outfile)]) == EXIT_OK

    lines = outfile.read_text().splitlines()
    assert lines[0].startswith("Ident            : PicoHarp 300")
    assert lines[-1].startswith("      3 ")
    stdout = capsys.readouterr().out
    assert "cnt_0=1 cnt_1=1" in stdout


def test_cli_no_header_quiet(make_pt2, tmp_path, capsys):
    infile = make_pt2(RECORDS)
    outfile = tmp_path / "dump.txt"

    assert main([str(infile), str(outfile), "--no-header", "-q"]) == EXIT_OK
    assert len(outfile.read_text().splitlines()) == len(RECORDS)
    assert capsys.readouterr().out == ""


def test_cli_truncated_input(make_pt2, tmp_path, capsys):
    infile = make_pt2(RECORDS, record_count=10)
    outfile = tmp_path / "dump.txt"

    assert main([str(infile), str(outfile), "--no-header"]) == EXIT_TRUNCATED
    assert len(outfile.read_text().splitlines()) == len(RECORDS)
    err = capsys.readouterr().err
    assert err.count("Unexpected end of input file") == 1


def test_cli_quiet_still_reports_illegal_channel(make_pt2, tmp_path, capsys):
    infile = make_pt2([photon(0, 1), photon(9, 2)], routing_channels=2)
    outfile = tmp_path / "dump.txt"

    assert main([str(infile), str(outfile), "-q"]) == EXIT_OK
    captured = capsys.readouterr()
    assert captured.out == ""
    assert "WARNING: Illegal Chan: #1 9" in captured.err
    assert outfile.read_text().splitlines()[-1].endswith(" illegal chan.")


def test_cli_wrong_mode_is_fatal(make_pt2, tmp_path, capsys):
    infile = make_pt2(RECORDS, meas_mode=3)
    outfile = tmp_path / "dump.txt"

    assert main([str(infile), str(outfile)]) == EXIT_FATAL
    assert not outfile.exists()
    assert "Wrong measurement mode" in capsys.readouterr().err


def test_cli_missing_input(tmp_path, capsys):
    assert main([str(tmp_path / "nope.pt2"), str(tmp_path / "out.txt")]) == EXIT_FATAL
    assert "cannot open input file" in capsys.readouterr().err
