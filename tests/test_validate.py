from casetools.config import CaseConfig
from casetools.validate import ERROR, WARNING, ConfigValidator


def _validate(config, which):
    return ConfigValidator(config, which=which).validate()


def test_complete_case_has_no_errors_or_warnings(config, which_ok):
    report = _validate(config, which_ok)
    assert report.error_count == 0
    assert report.warning_count == 0
    assert report.ok
    assert report.passed


def test_missing_file_is_an_error(config, case_dir, which_ok):
    (case_dir / "system" / "fvSchemes").unlink()

    report = _validate(config, which_ok)

    assert report.error_count >= 1
    assert not report.ok
    assert any(f.path == "system/fvSchemes" for f in report.errors)


def test_empty_geometry_file_is_an_error(config, case_dir, which_ok):
    (case_dir / "constant" / "triSurface" / "nozzle.stl").write_text("")

    report = _validate(config, which_ok)

    assert [f.message for f in report.errors] == ["constant/triSurface/nozzle.stl is EMPTY"]


def test_boundary_file_without_patch_is_an_error(config, case_dir, which_ok):
    (case_dir / "0" / "k").write_text("boundaryField\n{\n    walls { type kqRWallFunction; }\n}\n")

    report = _validate(config, which_ok)

    assert report.error_count == 1
    assert report.errors[0].message == "0/k MISSING enclosure BC"


def test_every_patch_is_checked(case_dir, which_ok):
    cfg = CaseConfig(case_dir=case_dir, patches=["enclosure", "outlet"])
    report = _validate(cfg, which_ok)
    # six boundary files, none mention outlet
    assert report.error_count == 6


def test_cross_reference_substring_required(config, case_dir, which_ok):
    (case_dir / "system" / "surfaceFeaturesDict").write_text('surfaces ("nozzle.stl");\n')

    report = _validate(config, which_ok)

    assert report.error_count == 1
    assert "enclosure.stl" in report.errors[0].message


def test_missing_execute_bit_is_only_a_warning(config, case_dir, which_ok):
    (case_dir / "scripts" / "Allrun.mesh").chmod(0o644)

    report = _validate(config, which_ok)

    assert report.ok
    assert report.warning_count == 1
    assert report.warnings[0].severity == WARNING


def test_missing_log_dir_and_optional_dict_are_warnings(config, case_dir, which_ok):
    (case_dir / "logs").rmdir()
    (case_dir / "system" / "decomposeParDict.mesh").unlink()

    report = _validate(config, which_ok)

    assert report.ok
    assert report.warning_count == 2


def test_missing_scheduler_is_an_error(config):
    report = _validate(config, lambda cmd: None)
    assert report.error_count == 1
    assert "sbatch" in report.errors[0].message


def test_empty_directory_reports_without_raising(tmp_path):
    cfg = CaseConfig(case_dir=tmp_path)
    report = _validate(cfg, lambda cmd: None)
    assert report.error_count > 10
    assert all(f.severity in (ERROR, WARNING) for f in report.findings)
    assert "failed" in report.summary()


def test_missing_file_is_reported_once(config, case_dir, which_ok):
    (case_dir / "0" / "U").unlink()
    (case_dir / "system" / "snappyHexMeshDict").unlink()

    report = _validate(config, which_ok)

    assert sorted(f.path for f in report.errors) == ["0/U", "system/snappyHexMeshDict"]
    assert report.error_count == 2
