import json

import pytest

from conftest import COVENANT
from covenant_circuit.cli import EXIT_INVALID, EXIT_MALFORMED, EXIT_OK, main
from covenant_circuit.keys import proof_to_dict, proving_key_to_dict, verification_key_to_dict, write_json
from covenant_circuit.transfer import decimal_strings


@pytest.fixture
def config(tmp_path, small_params):
    path = tmp_path / "params.json"
    path.write_text(json.dumps(small_params.to_dict()))
    return str(path)


def _witness_file(tmp_path, tx, params, signature=None, name="witness.json"):
    document = {key: decimal_strings(value) for key, value in tx.to_circuit_inputs(params).items()}
    if signature is not None:
        document["signature"] = signature.to_dict()
    path = tmp_path / name
    path.write_text(json.dumps(document))
    return str(path)


def _output(capsys):
    return json.loads(capsys.readouterr().out)


def test_compile(tmp_path, config, capsys, small_circuit):
    out = tmp_path / "r1cs.json"
    assert main(["--config", config, "compile", "--out", str(out)]) == EXIT_OK
    report = _output(capsys)
    assert report["circuit"] == "covenant_transfer"
    assert report["constraints"] == len(small_circuit.system.constraints)
    assert report["publicSignals"] == small_circuit.public_names
    assert report["public"] == 5
    r1cs = json.loads(out.read_text())
    assert r1cs["nConstraints"] == report["constraints"]
    assert r1cs["nPublic"] == 5


def test_check_valid_witness(tmp_path, config, capsys, small_params, make_transfer, owner):
    tx = make_transfer()
    path = _witness_file(tmp_path, tx, small_params, tx.sign(owner.secret, small_params))
    assert main(["--config", config, "check", path]) == EXIT_OK
    report = _output(capsys)
    assert report["valid"] is True
    assert report["public"]["message"] == str(tx.signing_message(small_params))


def test_check_invalid_witness(tmp_path, config, small_params, make_transfer, owner):
    tx = make_transfer(output_amounts=(100, 100))
    path = _witness_file(tmp_path, tx, small_params, tx.sign(owner.secret, small_params))
    assert main(["--config", config, "check", path]) == EXIT_INVALID


def test_check_without_signature(tmp_path, config, small_params, make_transfer):
    path = _witness_file(tmp_path, make_transfer(), small_params)
    assert main(["--config", config, "check", path]) == EXIT_INVALID
    assert main(["--config", config, "check", "--skip-signature", path]) == EXIT_OK


def test_check_malformed_inputs(tmp_path, config, small_params, make_transfer):
    path = tmp_path / "short.json"
    document = {key: decimal_strings(value)
                for key, value in make_transfer().to_circuit_inputs(small_params).items()}
    document["outputScripts"] = document["outputScripts"][:2]
    path.write_text(json.dumps(document))
    assert main(["--config", config, "check", str(path)]) == EXIT_MALFORMED

    document = {key: decimal_strings(value)
                for key, value in make_transfer().to_circuit_inputs(small_params).items()}
    document["numInputs"] = "lots"
    path.write_text(json.dumps(document))
    assert main(["--config", config, "check", str(path)]) == EXIT_MALFORMED

    (tmp_path / "broken.json").write_text("{")
    assert main(["--config", config, "check", str(tmp_path / "broken.json")]) == EXIT_MALFORMED


def test_witness_for_another_capacity_is_rejected(tmp_path, small_params, make_transfer):
    # the default circuit has ten slots, the witness four
    path = _witness_file(tmp_path, make_transfer(), small_params)
    assert main(["check", "--skip-signature", path]) == EXIT_MALFORMED


def test_bad_config(tmp_path, make_transfer, small_params):
    path = tmp_path / "params.json"
    path.write_text(json.dumps({"max_inputs": 0}))
    witness = _witness_file(tmp_path, make_transfer(), small_params)
    assert main(["--config", str(path), "check", witness]) == EXIT_MALFORMED


def test_setup_refuses_the_transfer_circuit(tmp_path, config, capsys):
    out_dir = tmp_path / "keys"
    assert main(["--config", config, "setup", "--out-dir", str(out_dir), "--seed", "1"]) == EXIT_MALFORMED
    assert "circuit too large for the reference backend" in capsys.readouterr().err
    assert not out_dir.exists()


def test_prove_refuses_the_transfer_circuit(tmp_path, config, capsys, small_params, make_transfer, owner,
                                            cube_keys):
    tx = make_transfer()
    witness = _witness_file(tmp_path, tx, small_params, tx.sign(owner.secret, small_params))
    write_json(tmp_path / "pk.json", proving_key_to_dict(cube_keys[0], "covenant_transfer"))
    args = ["--config", config, "prove", witness, "-k", str(tmp_path / "pk.json"), "-o", str(tmp_path / "out")]
    assert main(args) == EXIT_MALFORMED
    assert "circuit too large for the reference backend" in capsys.readouterr().err
    assert not (tmp_path / "out" / "proof.json").exists()


def test_verify(tmp_path, config, capsys, cube_keys, cube_proof):
    _, vk = cube_keys
    _, proof = cube_proof
    write_json(tmp_path / "vk.json", verification_key_to_dict(vk, "cube"))
    write_json(tmp_path / "proof.json", proof_to_dict(proof))
    write_json(tmp_path / "public.json", ["35"])
    args = ["--config", config, "verify", "-k", str(tmp_path / "vk.json"),
            "-p", str(tmp_path / "proof.json"), "-i", str(tmp_path / "public.json")]
    assert main(args) == EXIT_OK
    assert _output(capsys) == {"valid": True}

    write_json(tmp_path / "public.json", ["36"])
    assert main(args) == EXIT_INVALID

    write_json(tmp_path / "public.json", {"y": "35"})
    assert main(args) == EXIT_MALFORMED


def test_no_command_prints_help(capsys):
    assert main([]) == EXIT_OK
    assert "covenant-circuit" in capsys.readouterr().out
