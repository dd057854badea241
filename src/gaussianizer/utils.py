# External package imports
from concurrent.futures import ThreadPoolExecutor
from typing import Optional, Tuple, Literal
import os
import numpy as np
from scipy.special import erf, erfinv
from matplotlib.figure import Figure

# Type definition
TieBreak = Literal['index', 'unstable']

# Target normal distribution. A 3-sigma band around the mean spans [0, 1].
GAUSSIAN_MEAN = 0.5
GAUSSIAN_STD = 1 / 6
CHANNEL_NAMES = ('R', 'G', 'B')


class Bcolors:
    HEADER = '\033[95m'  # Processing steps
    OKBLUE = '\033[94m'  # Processing values
    OKCYAN = '\033[96m'  # Internal notes
    OKGREEN = '\033[92m'  # Ok values
    WARNING = '\033[93m'
    FAIL = '\033[91m'  # Problematic values
    ENDC = '\033[0m'
    BOLD = '\033[1m'
    UNDERLINE = '\033[4m'
    SECTION = '\033[4m\033[1m'


def colorize(text: str, color: Optional[str] = None) -> str:
    """Wrap every line of `text` with an ANSI color code."""
    if color is None:
        return text
    return "\n".join(f'{color}{line}{Bcolors.ENDC}' for line in text.splitlines())


def console_log(msg: str, indent_level: int = 0, color: Optional[str] = None, verbose: bool = True) -> str:
    """Print an indented (and optionally colored) message.

    Args:
        msg (str): Message, possibly spanning several lines.
        indent_level (int): Number of tabs prepended to each line.
        color (Optional[str]): One of the Bcolors codes.
        verbose (bool): If False, the message is formatted but not printed.

    Returns:
        str: The formatted message, so callers can keep it in their own log.
    """
    indent_str = '\t' * indent_level
    text = "\n".join(f'{indent_str}{line}' for line in msg.splitlines())
    text = colorize(text, color)
    if verbose:
        print(text)
    return text


def default_workers() -> int:
    """One worker per color channel, bounded by the available cores."""
    return max(1, min(len(CHANNEL_NAMES), os.cpu_count() or 1))


#########################################
#        NORMAL DISTRIBUTION            #
#########################################

def cdf(x: np.ndarray, mu: float = GAUSSIAN_MEAN, sigma: float = GAUSSIAN_STD) -> np.ndarray:
    """Cumulative distribution function of N(mu, sigma^2)."""
    return 0.5 * (1.0 + erf((np.asarray(x, dtype=np.float64) - mu) / (sigma * np.sqrt(2.0))))


def inv_cdf(u: np.ndarray, mu: float = GAUSSIAN_MEAN, sigma: float = GAUSSIAN_STD) -> np.ndarray:
    """Quantile function of N(mu, sigma^2).

    Args:
        u (np.ndarray): Probabilities, strictly inside (0, 1).
        mu (float): Mean of the normal distribution.
        sigma (float): Standard deviation of the normal distribution.

    Returns:
        np.ndarray: x such that cdf(x, mu, sigma) == u.

    Raises:
        FloatingPointError: If any probability is outside the open interval (0, 1).
    """
    arg = 2.0 * np.asarray(u, dtype=np.float64) - 1.0
    if arg.size and not (np.all(arg > -1.0) and np.all(arg < 1.0)):
        raise FloatingPointError("erfinv argument must lie strictly inside (-1, 1).")
    return sigma * np.sqrt(2.0) * erfinv(arg) + mu


#########################################
#        CHANNEL SPLIT / INTERLEAVE     #
#########################################

def split_channels(image: np.ndarray) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """Split an (H, W, 3) image into three flat channels in row-major order.

    Args:
        image (np.ndarray): RGB image of shape (H, W, 3).

    Returns:
        Tuple[np.ndarray, np.ndarray, np.ndarray]: R, G and B arrays of length H*W.
    """
    image = np.asarray(image)
    if image.ndim != 3 or image.shape[2] != 3:
        raise ValueError(f"Expected an (H, W, 3) RGB image; got shape {image.shape}.")
    flat = image.reshape(-1, 3)
    return tuple(np.ascontiguousarray(flat[:, c]) for c in range(3))


def interleave_channels(r: np.ndarray, g: np.ndarray, b: np.ndarray) -> np.ndarray:
    """Interleave three equal-length channels into a single R,G,B,R,G,B... buffer."""
    if not (len(r) == len(g) == len(b)):
        raise ValueError(f"Channels must have the same length; got {len(r)}, {len(g)} and {len(b)}.")
    out = np.empty(3 * len(r), dtype=np.result_type(r, g, b))
    out[0::3] = r
    out[1::3] = g
    out[2::3] = b
    return out


#########################################
#        RANK TRANSFORM                 #
#########################################

def sort_samples(values: np.ndarray, tie_break: TieBreak = 'index') -> np.ndarray:
    """Order the samples of one channel by ascending intensity.

    Args:
        values (np.ndarray): 1D array of channel intensities.
        tie_break (TieBreak): 'index' breaks ties by original pixel index (stable sort).
            'unstable' leaves the order of equal intensities to quicksort, as the
            reference tool did; the result is then not reproducible among ties.

    Returns:
        np.ndarray: `order` such that values[order] is sorted; order[k] is the original
            index of the k-th smallest sample.
    """
    if tie_break == 'index':
        kind = 'stable'
    elif tie_break == 'unstable':
        kind = 'quicksort'
    else:
        raise ValueError(f"tie_break must be 'index' or 'unstable'; got {tie_break!r}.")
    return np.argsort(values, kind=kind)


def rank_map(order: np.ndarray) -> np.ndarray:
    """Invert a sort order: ranks[order[k]] == k."""
    ranks = np.empty_like(order)
    ranks[order] = np.arange(order.size, dtype=order.dtype)
    return ranks


def forward_transform(ranks: np.ndarray, mu: float = GAUSSIAN_MEAN, sigma: float = GAUSSIAN_STD) -> np.ndarray:
    """Map ranks to normal quantiles at the midpoints (rank + 0.5) / N.

    Args:
        ranks (np.ndarray): Rank of every pixel, a permutation of [0, N).
        mu (float): Target mean.
        sigma (float): Target standard deviation.

    Returns:
        np.ndarray: float64 array of length N.
    """
    n = ranks.size
    if n == 0:
        return np.empty(0, dtype=np.float64)
    u = (ranks.astype(np.float64) + 0.5) / n
    out = inv_cdf(u, mu, sigma)
    if not np.all(np.isfinite(out)):
        raise FloatingPointError("Forward transform produced non-finite values.")
    return out


#########################################
#        INVERSE LUT                    #
#########################################

def inverse_lut(sorted_values: np.ndarray, width: int, mu: float = GAUSSIAN_MEAN, sigma: float = GAUSSIAN_STD) -> np.ndarray:
    """Build the inverse lookup table of one channel.

    Entry k holds the original intensity found at quantile cdf((k + 0.5) / width) of the
    channel's sorted samples. The table is non-decreasing in k.

    Args:
        sorted_values (np.ndarray): Channel intensities sorted in ascending order.
        width (int): Number of LUT entries.
        mu (float): Mean of the target distribution.
        sigma (float): Standard deviation of the target distribution.

    Returns:
        np.ndarray: uint8 array of length `width`.
    """
    if width < 0:
        raise ValueError(f"LUT width must be >= 0; got {width}.")
    lut = np.zeros(width, dtype=np.uint8)
    n = sorted_values.size
    if width == 0 or n == 0:
        return lut
    g = (np.arange(width, dtype=np.float64) + 0.5) / width
    u = cdf(g, mu, sigma)

    # Rounding can push u * n up to n
    index = np.minimum(np.floor(u * n).astype(np.int64), n - 1)
    lut[:] = sorted_values[index]
    return lut


#########################################
#        ORCHESTRATION                  #
#########################################

def transform_channel(values: np.ndarray, lut_width: int, tie_break: TieBreak = 'index',
                      mu: float = GAUSSIAN_MEAN, sigma: float = GAUSSIAN_STD) -> Tuple[np.ndarray, np.ndarray]:
    """Gaussianize one channel and build its inverse LUT from the same sorted samples."""
    order = sort_samples(values, tie_break=tie_break)
    forward = forward_transform(rank_map(order), mu, sigma).astype(np.float32)
    lut = inverse_lut(values[order], lut_width, mu, sigma)
    return forward, lut


def transform_histogram(image: np.ndarray, lut_width: Optional[int] = None, tie_break: TieBreak = 'index',
                        n_workers: Optional[int] = None, mu: float = GAUSSIAN_MEAN,
                        sigma: float = GAUSSIAN_STD) -> Tuple[np.ndarray, np.ndarray]:
    """Gaussianize every channel of an RGB texture and build the inverse LUT.

    Channels are processed concurrently, then both interleaved outputs are assembled
    concurrently. An exception in any worker aborts the whole transform.

    Args:
        image (np.ndarray): (H, W, 3) uint8 image.
        lut_width (Optional[int]): Number of LUT entries. Defaults to the image width.
        tie_break (TieBreak): Ordering of equal intensities, see `sort_samples`.
        n_workers (Optional[int]): Thread pool size. Defaults to `default_workers()`.
        mu (float): Target mean.
        sigma (float): Target standard deviation.

    Returns:
        Tuple[np.ndarray, np.ndarray]:
            - forward (np.ndarray): (H, W, 3) float32 Gaussianized image.
            - lut (np.ndarray): (1, lut_width, 3) uint8 inverse LUT.
    """
    image = np.asarray(image)
    if image.dtype != np.uint8:
        raise TypeError(f"image must be uint8; got {image.dtype}.")
    channels = split_channels(image)
    height, width = image.shape[:2]
    lut_width = width if lut_width is None else int(lut_width)
    # No samples, nothing to look up
    if height * width == 0:
        lut_width = 0

    with ThreadPoolExecutor(max_workers=n_workers or default_workers()) as executor:
        futures = [executor.submit(transform_channel, ch, lut_width, tie_break, mu, sigma) for ch in channels]
        results = [f.result() for f in futures]

        forwards = [fwd for fwd, _ in results]
        luts = [lut for _, lut in results]
        fut_img = executor.submit(interleave_channels, *forwards)
        fut_lut = executor.submit(interleave_channels, *luts)
        forward, lut = fut_img.result(), fut_lut.result()

    return forward.reshape(height, width, 3), lut.reshape(1, lut_width, 3)


#########################################
#        DIAGNOSTICS                    #
#########################################

def compute_rmse(a: np.ndarray, b: np.ndarray) -> float:
    """ Compute the root-mean-square error between two arrays. """
    return float(np.sqrt(np.mean((np.asarray(a, dtype=np.float64) - np.asarray(b, dtype=np.float64)) ** 2)))


def imhist(image: np.ndarray, n_bins: int = 256, normalized: bool = False) -> np.ndarray:
    """Computes the histogram of each channel of a uint8 image.

    Args:
        image (np.ndarray): (H, W, C) or (H, W) image.
        n_bins (int): Number of bins (default is 256).
        normalized (bool): If True, each channel's histogram sums to 1.

    Returns:
        counts (np.ndarray): (n_bins, C) histogram counts.
    """
    image = np.stack((image,), axis=-1) if image.ndim != 3 else image
    n_channels = image.shape[-1]
    count = np.zeros((n_bins, n_channels))
    for channel in range(n_channels):
        count[:, channel], _ = np.histogram(image[:, :, channel], bins=n_bins, range=(0, n_bins))
        if normalized and count[:, channel].sum() > 0:
            count[:, channel] = count[:, channel] / count[:, channel].sum()
    return count


def reconstruct_from_lut(forward: np.ndarray, lut: np.ndarray) -> np.ndarray:
    """Invert a Gaussianized image with its LUT, as a renderer would.

    LUT entry k covers the Gaussian values [k / L, (k + 1) / L), so each forward value is
    used directly as a grid position. Values beyond the [0, 1] range clamp to the end entries.

    Args:
        forward (np.ndarray): (H, W, 3) Gaussianized image.
        lut (np.ndarray): (1, L, 3) or (L, 3) uint8 inverse LUT.

    Returns:
        np.ndarray: (H, W, 3) uint8 approximation of the original texture.
    """
    lut = lut.reshape(-1, 3)
    n_entries = lut.shape[0]
    if n_entries == 0:
        return np.zeros(forward.shape, dtype=np.uint8)
    index = np.clip(np.floor(np.asarray(forward, dtype=np.float64) * n_entries).astype(np.int64), 0, n_entries - 1)
    out = np.empty(forward.shape, dtype=np.uint8)
    for c in range(3):
        out[..., c] = lut[index[..., c], c]
    return out


def gaussian_hist_plot(forward: np.ndarray, bins: int = 128, figsize=(8, 4), dpi=100,
                       mu: float = GAUSSIAN_MEAN, sigma: float = GAUSSIAN_STD, title: Optional[str] = None):
    """Plot the per-channel histogram of a Gaussianized image against the target density.

    Returns:
        (fig, ax)
    """
    fig = Figure(figsize=figsize, dpi=dpi)
    ax = fig.subplots()
    edges = np.linspace(0.0, 1.0, bins + 1)
    centers = (edges[:-1] + edges[1:]) / 2.0
    arr = forward.reshape(-1, 3)
    for c, color in enumerate(('red', 'green', 'blue')):
        h, _ = np.histogram(arr[:, c], bins=edges, density=True)
        ax.plot(centers, h, lw=1.5, color=color, label=CHANNEL_NAMES[c])
    density = np.exp(-0.5 * ((centers - mu) / sigma) ** 2) / (sigma * np.sqrt(2.0 * np.pi))
    ax.plot(centers, density, lw=1.0, ls='--', color='black', label=f'N({mu:g}, {sigma:.4f}²)')
    ax.set_xlim(0, 1)
    ax.set_yticks([])
    for spine in ("top", "right"):
        ax.spines[spine].set_visible(False)
    ax.legend(frameon=False, fontsize=9, loc='upper right')
    if title:
        ax.set_title(title, fontsize=11)
    return fig, ax
