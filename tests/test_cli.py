import json

from formlocalizer.cli_main import build_parser, main

OPTIONS_FILE = "<?php\n$x = ['label' => 'Hello', 'help' => 'Some help', 'translation_domain' => 'forms'];\n"


def make_source(tmp_path):
    src = tmp_path / "src"
    src.mkdir()
    (src / "HelloType.php").write_text(OPTIONS_FILE, encoding="utf-8")
    return src


def test_extract_writes_xliff(tmp_path, capsys):
    src = make_source(tmp_path)
    out = tmp_path / "translations"
    code = main(["extract", "de", "--dir", str(src), "--output-dir", str(out)])
    assert code == 0
    assert (out / "forms.de.xlf").exists()
    assert "SUCCESS" in capsys.readouterr().out


def test_custom_field_and_json_format(tmp_path):
    src = make_source(tmp_path)
    out = tmp_path / "out"
    code = main([
        "extract", "en", "--dir", str(src), "--output-dir", str(out),
        "--output-format", "json", "--custom-field", "help", "--no-add-filerefs",
    ])
    assert code == 0
    data = json.loads((out / "forms.en.json").read_text(encoding="utf-8"))
    assert sorted(data) == ["Hello", "Some help"]
    assert "sources" not in data["Hello"]


def test_config_file_and_report(tmp_path):
    src = make_source(tmp_path)
    config = tmp_path / "formlocalizer.json"
    config.write_text(json.dumps({
        "extraction_settings": {"locales": ["fr"], "scan_dirs": [str(src)]},
        "output_settings": {"output_dir": str(tmp_path / "from-config")},
    }), encoding="utf-8")
    report = tmp_path / "report.json"
    code = main(["extract", "--config", str(config), "--report", str(report)])
    assert code == 0
    assert (tmp_path / "from-config" / "forms.fr.xlf").exists()
    assert json.loads(report.read_text(encoding="utf-8"))["totals"]["extracted"] == 1


def test_missing_config_file_fails(tmp_path):
    assert main(["extract", "--config", str(tmp_path / "missing.json")]) == 1


def test_strict_mode_fails_on_dynamic_label(tmp_path):
    src = tmp_path / "src"
    src.mkdir()
    (src / "Dynamic.php").write_text("<?php\n$x = ['label' => $label];\n", encoding="utf-8")
    code = main(["extract", "en", "--dir", str(src), "--output-dir", str(tmp_path / "out"), "--strict"])
    assert code == 1


def test_dry_run(tmp_path):
    src = make_source(tmp_path)
    out = tmp_path / "out"
    assert main(["extract", "en", "--dir", str(src), "--output-dir", str(out), "--dry-run"]) == 0
    assert not out.exists()


def test_no_command_prints_help(capsys):
    assert main([]) == 1
    assert "extract" in capsys.readouterr().out


def test_parser_defaults():
    args = build_parser().parse_args(["extract"])
    assert args.locales == []
    assert args.dirs == []
    assert args.legacy_choices is False
    assert args.add_filerefs is None
