# Global imports
from typing import Optional, Literal, Union
from pathlib import Path
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from gaussianizer.utils import console_log, Bcolors

IMG_SUFFIX = 'gaussian'
LUT_SUFFIX = 'lut'
DEFAULT_STEM = 'Texture'


class Options(BaseModel):
    """
    Class to hold gaussianizer processing options.

    Args:
    ----------------------------------------------INPUT/OUTPUT files-------------------------------------------------
        input_file (Union[str, Path]): Texture to transform. Any format readable by Pillow.

        output_folder (Union[str, Path]): Directory where both outputs are written (default = ./).
            If a file path is given, its parent directory is used.

        img_prefix (Optional[str]): File name (without .tif) of the Gaussianized image.
            Default is `<input stem>-gaussian`.

        lut_prefix (Optional[str]): File name (without .tif) of the inverse LUT.
            Default is `<input stem>-lut`.

    ----------------------------------------------TRANSFORM-------------------------------------------------
        lut_width (Optional[int]): Number of entries of the inverse LUT (default = None, i.e. the image width).

        tie_break (Literal['index', 'unstable']): Ordering of pixels with equal intensities (default = 'index').
            'index' = ties are ordered by pixel position; the output is reproducible.
            'unstable' = ties are left to an unstable sort.

        n_workers (Optional[int]): Size of the thread pool (default = None, one worker per channel).

    ----------------------------------------------REPORTING-------------------------------------------------
        save_plots (bool): Save a histogram of the Gaussianized image next to the outputs (default = False).

        save_log (bool): Write a log_<datetime>.txt file in the output folder (default = True).

        verbose (Literal[-1, 0, 1, 2, 3]): Controls verbosity levels (default = 0).
            -1 = Quiet mode
            0 = Progress bar with ETA
            1 = Basic progress steps (no progress bar)
            2 = Additional info about channels and results of internal tests are printed (no progress bar)
            3 = Debug mode for developers: failing internal tests raise (no progress bar)
    """
    model_config = ConfigDict(validate_assignment=True, arbitrary_types_allowed=True, extra='forbid')

    input_file: Optional[Path] = None
    output_folder: Path = Path('./')
    img_prefix: Optional[str] = None
    lut_prefix: Optional[str] = None

    lut_width: Optional[int] = Field(default=None, ge=0)
    tie_break: Literal['index', 'unstable'] = 'index'
    n_workers: Optional[int] = Field(default=None, ge=1)

    save_plots: bool = False
    save_log: bool = True
    verbose: Literal[-1, 0, 1, 2, 3] = 0

    @field_validator('input_file', mode='before')
    @classmethod
    def _expand_input(cls, v: Optional[Union[str, Path]]) -> Optional[Path]:
        if v is None or (isinstance(v, str) and v.strip() == ''):
            return None
        return Path(v).expanduser()

    @field_validator('output_folder', mode='before')
    @classmethod
    def _output_directory(cls, v: Union[str, Path]) -> Path:
        return output_path_directory(Path(v).expanduser())

    @field_validator('img_prefix', 'lut_prefix')
    @classmethod
    def _plain_file_name(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and (v == '' or Path(v).name != v):
            raise ValueError(f"Prefix must be a plain file name without directories; got {v!r}")
        return v

    @model_validator(mode='after')
    def _validate_options(self) -> "Options":
        if self.input_file is not None and self.input_file.exists() and not self.input_file.is_file():
            raise ValueError(f"{self.input_file} is not a file")
        if self.output_folder.exists() and not self.output_folder.is_dir():
            raise ValueError(f"{self.output_folder} is not a directory")
        return self

    def __repr__(self):
        """Provides a detailed representation of all options for easy inspection."""
        return '\n'.join([f"{key}: {value}" for key, value in self.model_dump().items()])

    @property
    def input_stem(self) -> str:
        if self.input_file is None or self.input_file.name == '':
            return DEFAULT_STEM
        name = self.input_file.name
        # A leading dot belongs to the stem (.brick.png -> .brick)
        lead = '.' if name.startswith('.') else ''
        stem = lead + name[len(lead):].split('.')[0]
        return stem if stem.strip('.') else DEFAULT_STEM

    @property
    def img_path(self) -> Path:
        name = self.img_prefix if self.img_prefix is not None else f"{self.input_stem}-{IMG_SUFFIX}"
        return self.output_folder / f"{name}.tif"

    @property
    def lut_path(self) -> Path:
        name = self.lut_prefix if self.lut_prefix is not None else f"{self.input_stem}-{LUT_SUFFIX}"
        return self.output_folder / f"{name}.tif"

    def assumptions_warning(self) -> Optional[str]:
        msg = None
        if self.tie_break == 'unstable':
            msg = '\n'.join([
                "[warning to user] tie_break='unstable': pixels sharing the same intensity are ranked in an unspecified order.",
                "The Gaussianized image may differ between runs for textures with flat regions."])
        if msg is not None:
            console_log(msg=msg, indent_level=0, color=Bcolors.WARNING, verbose=self.verbose >= 1)
        return msg


def output_path_directory(path: Path) -> Path:
    """Return `path` if it is a directory, otherwise its parent.

    A path that does not exist yet and has no suffix is taken as a directory to create.
    """
    if path.is_dir() or (not path.exists() and path.suffix == ''):
        return path
    return path.parent
