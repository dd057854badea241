from typing import Optional, List, Tuple
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime
from pathlib import Path
import re
import time
import numpy as np
from tqdm.auto import tqdm

from gaussianizer.Options import Options
from gaussianizer.TextureIO import load_texture, write_rgb8, write_rgb32f
from gaussianizer.utils import (
    transform_histogram, reconstruct_from_lut, gaussian_hist_plot, imhist, compute_rmse,
    console_log, Bcolors, CHANNEL_NAMES, GAUSSIAN_MEAN, GAUSSIAN_STD)


class TextureProcessor:
    """Precompute the Gaussianized texture and its inverse LUT.

    Args:
        options (Options): Processing options. `options.input_file` is required unless
            `image` is given.
        image (Optional[np.ndarray]): (H, W, 3) uint8 texture. If provided, it is used
            instead of loading `options.input_file`.
        write_outputs (bool): If False, results are only kept in memory (see `get_results`).

    Attributes:
        forward (np.ndarray): (H, W, 3) float32 Gaussianized image.
        lut (np.ndarray): (1, L, 3) uint8 inverse LUT.
        log (List[str]): Processing log.
        validation (List[dict]): Results of the internal tests.
        written (List[Path]): Files written by this run.
    """

    def __init__(self, options: Options, image: Optional[np.ndarray] = None, write_outputs: bool = True):
        self.options: Options = options
        self.verbose: int = options.verbose
        self.image: Optional[np.ndarray] = image
        self.write_outputs: bool = write_outputs
        self.forward: Optional[np.ndarray] = None
        self.lut: Optional[np.ndarray] = None
        self.log: List[str] = []
        self.validation: List[dict] = []
        self.written: List[Path] = []

        # Private attributes
        self._ANSI_RE = re.compile(r"\x1b\[[0-9;]*m")
        self._processing_steps: List[str] = ['load', 'transform', 'validate']
        if self.write_outputs:
            self._processing_steps.append('write')
        self._step_name = {
            'load': 'Loading texture',
            'transform': 'Transforming channel histograms',
            'validate': 'Validating results',
            'write': 'Writing outputs',
        }
        self._processed_channel: Optional[str] = None

        # Run processing steps
        self.process()
        if self.write_outputs and self.options.save_log:
            self.print_log()

    def get_results(self) -> Tuple[np.ndarray, np.ndarray]:
        """Return the Gaussianized image and the inverse LUT."""
        return self.forward, self.lut

    def console_log(self, msg: str, level: int = 0, color: Optional[str] = None, min_verbose: int = 1):
        msg = console_log(msg, indent_level=level, color=color, verbose=self.verbose >= min_verbose)
        self.log.append(msg)

    def print_log(self) -> Path:
        """ Record the processing log for reproducibility """
        def _strip_ansi(s: str) -> str:
            return self._ANSI_RE.sub("", s)

        current_datetime = datetime.now().strftime("%Y-%m-%d_%H-%M-%S")
        filename = Path(self.options.output_folder) / f"log_{current_datetime}.txt"

        with open(filename, 'w') as file:
            for step in self.log:
                file.write(_strip_ansi(step) + '\n')
        return filename

    def process(self):
        """Runs every processing step, with a progress bar when verbose == 0."""
        self.options.assumptions_warning()
        steps = self._processing_steps
        progress = tqdm(steps, desc='gaussianizer', unit='step', leave=False) if self.verbose == 0 else None
        start = time.perf_counter()
        for step in steps:
            if progress is not None:
                progress.set_postfix_str(self._step_name[step])
            self.console_log(msg=f'{self._step_name[step]}...', level=0, color=Bcolors.SECTION, min_verbose=1)
            getattr(self, step)()
            if progress is not None:
                progress.update(1)
        if progress is not None:
            progress.close()
        self.console_log(msg=f'Finished processing. Took {time.perf_counter() - start:.3f} s', level=0,
                         color=Bcolors.OKGREEN, min_verbose=1)

    def load(self):
        if self.image is None:
            if self.options.input_file is None:
                raise ValueError("No input file specified")
            self.console_log(msg=f'Processing {self.options.input_file}', level=1, color=Bcolors.OKBLUE, min_verbose=1)
            self.image = load_texture(self.options.input_file)
        self.image = np.asarray(self.image)
        height, width = self.image.shape[:2]
        self.console_log(msg=f'Texture size: {width} x {height}', level=1, color=Bcolors.OKBLUE, min_verbose=2)

    def transform(self):
        self.forward, self.lut = transform_histogram(
            self.image,
            lut_width=self.options.lut_width,
            tie_break=self.options.tie_break,
            n_workers=self.options.n_workers,
        )
        self.console_log(msg=f'LUT entries: {self.lut.shape[1]}', level=1, color=Bcolors.OKBLUE, min_verbose=2)

    def validate(self):
        """Internal tests on the per-channel statistics of both outputs."""
        if self.forward.size == 0:
            self.console_log(msg='Empty texture: nothing to validate.', level=1, color=Bcolors.WARNING, min_verbose=0)
            return

        # Sample statistics at N midpoint quantiles are biased low for small N
        n = self.forward.shape[0] * self.forward.shape[1]
        tolerance = max(5e-3, 2.0 / np.sqrt(n) * GAUSSIAN_STD)

        restored = reconstruct_from_lut(self.forward, self.lut) if self.lut.size else None
        for c, name in enumerate(CHANNEL_NAMES):
            self._processed_channel = name
            channel = self.forward[..., c].astype(np.float64)
            self._validate(observed=[channel.mean(), channel.std()], expected=[GAUSSIAN_MEAN, GAUSSIAN_STD],
                           measures_str=['M', 'SD'], tolerance=tolerance)
            lut = self.lut[0, :, c]
            monotonic = bool(np.all(np.diff(lut.astype(np.int16)) >= 0))
            self._validate(observed=[float(monotonic)], expected=[1.0], measures_str=['LUT monotonic'])
            if restored is not None:
                hist_orig = imhist(self.image[..., c], normalized=True)
                hist_rest = imhist(restored[..., c], normalized=True)
                rmse = compute_rmse(np.cumsum(hist_orig), np.cumsum(hist_rest))
                self.console_log(msg=f'CDF RMS error (original vs LUT reconstruction) = {rmse:4.4f}', level=2,
                                 color=Bcolors.OKBLUE, min_verbose=2)
        self._processed_channel = None

    def _validate(self, observed: List[float], expected: List[float], measures_str: List[str], tolerance: float = 5e-3):
        """Internal validation"""
        if len(observed) != len(expected) or len(observed) != len(measures_str):
            raise ValueError('observed, expected and measures_str lists must be the same size')
        diff = [np.abs(obs - expected[idx]) for idx, obs in enumerate(observed)]
        results = {
            'channel': self._processed_channel,
            'measures': measures_str,
            'valid_result': bool(np.all([d < tolerance for d in diff])),
        }
        obs = ', '.join([f'{msr} = {observed[idx]:4.4f}' for idx, msr in enumerate(measures_str)])
        exp = ', '.join([f'{msr} = {expected[idx]:4.4f}' for idx, msr in enumerate(measures_str)])
        res_color = Bcolors.OKGREEN if results['valid_result'] else Bcolors.FAIL
        res_txt = 'PASS' if results['valid_result'] else 'FAIL'
        res = f'{Bcolors.OKCYAN}Internal test ({self._processed_channel}):{Bcolors.ENDC} {res_color}{res_txt}{Bcolors.ENDC}'
        if res_txt == 'FAIL' and self.verbose > 2:
            raise RuntimeError(f"At least one difference between expected and observed values is larger than tolerance: {diff}")
        results['log_result'] = f'{Bcolors.OKBLUE}Observed: {obs}\nExpected: {exp}{Bcolors.ENDC}\n{res}'
        self.console_log(msg=results['log_result'], level=1, min_verbose=2)
        self.validation.append(results)

    def write(self):
        """Write both outputs concurrently; they target independent files."""
        if self.forward.size == 0 or self.lut.size == 0:
            raise ValueError("Cannot write outputs of an empty texture or an empty LUT.")
        out_dir = Path(self.options.output_folder)
        out_dir.mkdir(parents=True, exist_ok=True)
        img_path, lut_path = self.options.img_path, self.options.lut_path
        self.console_log(msg=f'Writing output to {img_path.name} and {lut_path.name} in directory {out_dir}',
                         level=1, color=Bcolors.OKBLUE, min_verbose=1)

        targets = [img_path, lut_path]
        with ThreadPoolExecutor(max_workers=2) as executor:
            futures = [executor.submit(write_rgb32f, img_path, self.forward),
                       executor.submit(write_rgb8, lut_path, self.lut)]
        errors = [f.exception() for f in futures if f.exception() is not None]
        if errors:
            # No partial output: a failed writer may still have left a truncated file
            for path in targets:
                path.unlink(missing_ok=True)
            raise errors[0]
        self.written = [f.result() for f in futures]

        if self.options.save_plots:
            fig, _ = gaussian_hist_plot(self.forward, title=img_path.stem)
            plot_path = out_dir / f"{img_path.stem}-hist.png"
            fig.savefig(plot_path)
            self.written.append(plot_path)
            self.console_log(msg=f'Histogram saved to {plot_path}', level=1, color=Bcolors.OKBLUE, min_verbose=1)
