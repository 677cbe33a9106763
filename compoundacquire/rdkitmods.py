from contextlib import ContextDecorator
from typing import Optional

from rdkit import Chem
from rdkit import rdBase
from rdkit.Chem import rdFingerprintGenerator
from rdkit.Chem import rdMolDescriptors

ECFP6_RADIUS = 3


class disabling_rdkit_logger(ContextDecorator):
    """
    Context manager that silences the RDKit log channels while structures are parsed.
    based on https://github.com/rdkit/rdkit/issues/2320#issuecomment-731261149

    Molfiles coming back from a listing service are not always clean, and RDKit reports
    every problem on stderr. Parse failures are handled by the caller, so the noise is muted.

    Attributes:
        previous_status (dict[str, bool]): Channel status found on construction, restored on exit.

        desired_status (dict[str, bool]): Channel status applied on entry.
    """

    def __init__(self, mute_errors: bool = True, mute_warnings: bool = True) -> None:
        self.previous_status = self._get_log_status()
        self.desired_status = {
            "rdApp.error": not mute_errors,
            "rdApp.warning": not mute_warnings,
            "rdApp.info": False,
            "rdApp.debug": False,
        }

    @staticmethod
    def _get_log_status() -> dict[str, bool]:
        status = {}
        for line in rdBase.LogStatus().splitlines():
            channel, _, state = line.strip().partition(":")
            if not channel:
                continue
            status[channel] = state == "enabled"
        return status

    @staticmethod
    def _apply_log_status(log_status: dict[str, bool]) -> None:
        for channel, enabled in log_status.items():
            if enabled:
                rdBase.EnableLog(channel)
            else:
                rdBase.DisableLog(channel)

    def __enter__(self) -> "disabling_rdkit_logger":
        self._apply_log_status(self.desired_status)
        return self

    def __exit__(self, exception_type, exception_value, exception_traceback) -> None:
        self._apply_log_status(self.previous_status)


def read_molblock(molfile: Optional[str]) -> Optional[Chem.rdchem.Mol]:
    """
    Read an MDL Molfile into an RDKit molecule.

    Args:
        molfile (Optional[str]): The molfile text.

    Returns:
        Optional[Chem.rdchem.Mol]: The molecule, or None if the molfile is empty or unreadable.

    Notes:
        - Tries a sanitized read first; if that fails, falls back to an unsanitized read
          with a non-strict property cache update, so that unusual valences still give a formula.
    """
    if not molfile or not isinstance(molfile, str):
        return None

    with disabling_rdkit_logger():
        mol = Chem.MolFromMolBlock(molfile)
        if mol is None:
            mol = Chem.MolFromMolBlock(molfile, sanitize=False)
            if mol is None:
                return None
            try:
                mol.UpdatePropertyCache()
            except Exception:
                mol.UpdatePropertyCache(strict=False)
            Chem.GetSymmSSSR(mol)

    if mol.GetNumAtoms() == 0:
        return None
    return mol


def molecular_formula(mol: Chem.rdchem.Mol) -> str:
    return rdMolDescriptors.CalcMolFormula(mol)


def ecfp6_fragment_hashes(mol: Chem.rdchem.Mol) -> tuple[int, ...]:
    """Sorted unique Morgan radius-3 fragment hashes of a molecule."""
    generator = rdFingerprintGenerator.GetMorganGenerator(radius=ECFP6_RADIUS)
    with disabling_rdkit_logger():
        fingerprint = generator.GetSparseCountFingerprint(mol)
    return tuple(sorted(fingerprint.GetNonzeroElements().keys()))
