"""
covenant-circuit command line

Usage:
    covenant-circuit [--config FILE] [-v] <command> [options]

Commands:
    compile     Build the transfer circuit, print its size, optionally write R1CS JSON
    setup       Generate a proving key and a verification key (small circuits only)
    check       Evaluate a witness file against the circuit
    prove       Prove a witness file with a proving key (small circuits only)
    verify      Verify a proof against public inputs

Exit codes: 0 success / valid, 1 invalid witness or proof, 2 malformed input.
"""

from __future__ import annotations

import argparse
import json
import logging
import random
import sys
from pathlib import Path
from typing import Any, List, Optional

from . import __version__
from .backend import Groth16Backend
from .config import ConfigError, load_params
from .errors import BackendError, KeyLoadError, MalformedFieldValue, ShapeMismatch, UnsatisfiedConstraint
from .keys import (
    load_proof,
    load_proving_key,
    load_verification_key,
    proof_to_dict,
    proving_key_to_dict,
    read_json,
    verification_key_to_dict,
    write_json,
)
from .transfer import TransferCircuit, split_signature

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_INVALID = 1
EXIT_MALFORMED = 2


class CLIError(Exception):
    """CLI error with exit code."""

    def __init__(self, message: str, exit_code: int = EXIT_MALFORMED):
        super().__init__(message)
        self.exit_code = exit_code


class CovenantCLI:
    def __init__(self):
        self.parser = argparse.ArgumentParser(
            prog="covenant-circuit",
            description="Covenant-bound confidential transfer circuit",
            formatter_class=argparse.RawDescriptionHelpFormatter,
        )
        self.parser.add_argument("--version", "-V", action="version", version=f"covenant-circuit {__version__}")
        self.parser.add_argument("--config", "-c", help="JSON file with circuit parameters")
        self.parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")

        sub = self.parser.add_subparsers(dest="command", help="Commands")

        compile_cmd = sub.add_parser("compile", help="Build the circuit and report its size")
        compile_cmd.add_argument("--out", "-o", help="Write the R1CS as JSON to this file")

        setup_cmd = sub.add_parser("setup", help="Generate proving and verification keys")
        setup_cmd.add_argument("--out-dir", "-o", default=".", help="Directory for the key files")
        setup_cmd.add_argument("--seed", type=int, help="Seed the toxic waste (testing only)")

        check_cmd = sub.add_parser("check", help="Evaluate a witness file")
        check_cmd.add_argument("witness", help="JSON file with circuit inputs and a signature")
        check_cmd.add_argument("--skip-signature", action="store_true",
                               help="Only evaluate the constraints, do not check the signature")

        prove_cmd = sub.add_parser("prove", help="Prove a witness file")
        prove_cmd.add_argument("witness", help="JSON file with circuit inputs and a signature")
        prove_cmd.add_argument("--proving-key", "-k", required=True)
        prove_cmd.add_argument("--out-dir", "-o", default=".", help="Directory for proof.json and public.json")
        prove_cmd.add_argument("--seed", type=int, help="Seed the proof randomness (testing only)")

        verify_cmd = sub.add_parser("verify", help="Verify a proof")
        verify_cmd.add_argument("--verification-key", "-k", required=True)
        verify_cmd.add_argument("--proof", "-p", required=True)
        verify_cmd.add_argument("--public", "-i", required=True, help="JSON list of public inputs")

    def run(self, args: Optional[List[str]] = None) -> int:
        parsed = self.parser.parse_args(args)
        logging.basicConfig(
            level=logging.DEBUG if parsed.verbose else logging.WARNING,
            format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        )

        if not parsed.command:
            self.parser.print_help()
            return EXIT_OK

        try:
            result = getattr(self, f"_handle_{parsed.command}")(parsed)
        except CLIError as e:
            print(f"Error: {e}", file=sys.stderr)
            return e.exit_code
        except UnsatisfiedConstraint as e:
            print(f"Invalid: {e}", file=sys.stderr)
            return EXIT_INVALID
        except (ShapeMismatch, MalformedFieldValue, ConfigError, KeyLoadError) as e:
            print(f"Error: {e}", file=sys.stderr)
            return EXIT_MALFORMED
        except BackendError as e:
            print(f"Backend error: {e}", file=sys.stderr)
            return EXIT_MALFORMED

        print(json.dumps(result, indent=2))
        return EXIT_OK if result.get("valid", True) else EXIT_INVALID

    def _circuit(self, args: argparse.Namespace) -> TransferCircuit:
        return TransferCircuit(load_params(args.config))

    def _read_witness(self, path: str):
        try:
            with Path(path).open("r", encoding="utf-8") as infile:
                document = json.load(infile)
        except (OSError, json.JSONDecodeError) as exc:
            raise CLIError(f"cannot read witness file {path}: {exc}") from exc
        if not isinstance(document, dict):
            raise CLIError(f"{path} must contain a JSON object")
        return split_signature(document)

    def _handle_compile(self, args: argparse.Namespace) -> Any:
        circuit = self._circuit(args)
        if args.out:
            write_json(args.out, circuit.system.to_json())
        return {"circuit": circuit.system.name, "params": circuit.params.to_dict(),
                "publicSignals": circuit.public_names, **circuit.system.stats()}

    def _handle_setup(self, args: argparse.Namespace) -> Any:
        circuit = self._circuit(args)
        rng = random.Random(args.seed) if args.seed is not None else None
        pk, vk = Groth16Backend(circuit.system, rng=rng).setup()
        out_dir = Path(args.out_dir)
        out_dir.mkdir(parents=True, exist_ok=True)
        write_json(out_dir / "proving_key.json", proving_key_to_dict(pk, circuit.system.name))
        write_json(out_dir / "verification_key.json", verification_key_to_dict(vk, circuit.system.name))
        return {"proving_key": str(out_dir / "proving_key.json"),
                "verification_key": str(out_dir / "verification_key.json")}

    def _handle_check(self, args: argparse.Namespace) -> Any:
        circuit = self._circuit(args)
        inputs, signature = self._read_witness(args.witness)
        if args.skip_signature:
            assignment = circuit.evaluate(inputs)
        else:
            assignment = circuit.check(inputs, signature)
        return {"valid": True, "public": dict(zip(circuit.public_names, assignment.public_json()))}

    def _handle_prove(self, args: argparse.Namespace) -> Any:
        circuit = self._circuit(args)
        pk, name = load_proving_key(args.proving_key)
        if name and name != circuit.system.name:
            raise CLIError(f"proving key is for circuit {name!r}, not {circuit.system.name!r}")
        inputs, signature = self._read_witness(args.witness)
        assignment = circuit.check(inputs, signature)
        rng = random.Random(args.seed) if args.seed is not None else None
        proof = Groth16Backend(circuit.system, rng=rng).prove(pk, assignment)
        out_dir = Path(args.out_dir)
        out_dir.mkdir(parents=True, exist_ok=True)
        write_json(out_dir / "proof.json", proof_to_dict(proof))
        write_json(out_dir / "public.json", assignment.public_json())
        return {"proof": str(out_dir / "proof.json"), "public": str(out_dir / "public.json")}

    def _handle_verify(self, args: argparse.Namespace) -> Any:
        circuit = self._circuit(args)
        vk, _ = load_verification_key(args.verification_key)
        proof = load_proof(args.proof)
        public = read_json(args.public)
        if not isinstance(public, list):
            raise CLIError(f"{args.public} must contain a JSON list")
        valid = Groth16Backend(circuit.system).verify(vk, public, proof)
        return {"valid": valid}


def main(argv: Optional[List[str]] = None) -> int:
    """CLI entry point."""
    return CovenantCLI().run(argv)


if __name__ == "__main__":
    sys.exit(main())
