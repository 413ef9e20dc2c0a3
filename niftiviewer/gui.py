"""Desktop viewer: welcome dialog, slice viewer window and the command entry point."""

from __future__ import annotations

import argparse
import sys
from typing import Callable, Optional

import numpy as np
from PIL import Image

from niftiviewer.filters import FilterKind
from niftiviewer.nifti import NiftiError
from niftiviewer.rendering import DISPLAY_SIZE
from niftiviewer.session import (
    FILTER_DIR,
    TUMOR_DIR,
    VIDEO_DIR,
    ViewerSession,
    analyze_folder,
)

NIFTI_FILETYPES = [("Archivos NIfTI", "*.nii *.nii.gz"), ("Todos", "*")]
_LOAD_ERRORS = (OSError, NiftiError, ValueError)
_VIEW_KEYS = ("original", "overlay", "tumor", "filtered")


def _tk():
    """The tkinter module with its dialog and themed-widget submodules loaded."""
    import tkinter
    import tkinter.filedialog
    import tkinter.messagebox
    import tkinter.ttk

    return tkinter


def _display_image(array) -> Image.Image:
    """Convert a grayscale or BGR array to a PIL image at display size."""
    data = np.asarray(array)
    if data.dtype != np.uint8:
        data = np.clip(data, 0, 255).astype(np.uint8)
    if data.ndim == 3:
        data = data[..., 2::-1]
    elif data.ndim != 2:
        raise ValueError(f"cannot display a {data.ndim}-D array")
    image = Image.fromarray(np.ascontiguousarray(data))
    if image.size != DISPLAY_SIZE:
        image = image.resize(DISPLAY_SIZE, Image.BILINEAR)
    return image


def _show_figure(master, figure, title: str) -> None:
    """Open an independent window holding a matplotlib figure."""
    from matplotlib.backends.backend_tkagg import FigureCanvasTkAgg

    tk = _tk()
    window = tk.Toplevel(master)
    window.title(title)
    window.geometry("800x600")
    canvas = FigureCanvasTkAgg(figure, master=window)
    canvas.draw()
    canvas.get_tk_widget().pack(fill="both", expand=True)


def _ask_and_load(parent, session: ViewerSession) -> bool:
    """Ask for an image and a mask file and load them into ``session``."""
    tk = _tk()
    image_path = tk.filedialog.askopenfilename(
        parent=parent, title="Seleccionar imagen NIfTI", filetypes=NIFTI_FILETYPES
    )
    if not image_path:
        tk.messagebox.showwarning("Aviso", "No seleccionó archivo de imagen.", parent=parent)
        return False
    mask_path = tk.filedialog.askopenfilename(
        parent=parent, title="Seleccionar máscara NIfTI", filetypes=NIFTI_FILETYPES
    )
    if not mask_path:
        tk.messagebox.showwarning("Aviso", "No seleccionó archivo de máscara.", parent=parent)
        return False
    try:
        session.load(image_path, mask_path)
    except _LOAD_ERRORS as exc:
        tk.messagebox.showerror(
            "Error", f"No se pudieron cargar las imágenes: {exc}", parent=parent
        )
        return False
    return True


class WelcomeDialog:
    """The opening dialog with a single button that moves on to the viewer."""

    def __init__(
        self,
        master,
        on_next: Callable[[], None],
        on_cancel: Optional[Callable[[], None]] = None,
    ):
        tk = _tk()
        self._on_next = on_next
        self._on_cancel = on_cancel
        self.top = tk.Toplevel(master)
        self.top.title("Bienvenido")
        self.top.geometry("400x250")
        self.top.protocol("WM_DELETE_WINDOW", self._cancel)

        tk.Label(
            self.top, text="Proyecto Integrador", font=("TkDefaultFont", 18, "bold")
        ).pack(pady=(20, 4))
        tk.Label(self.top, text="Visión Artificial", font=("TkDefaultFont", 12)).pack()
        tk.Button(
            self.top, text="Siguiente", width=12, height=2, cursor="hand2", command=self._next
        ).pack(side="bottom", pady=20)

    def _next(self) -> None:
        self.top.destroy()
        self._on_next()

    def _cancel(self) -> None:
        self.top.destroy()
        if self._on_cancel is not None:
            self._on_cancel()


class ViewerWindow:
    """The slice viewer: four image panes, a slice slider and the actions."""

    def __init__(self, master, session: Optional[ViewerSession] = None):
        tk = _tk()
        ttk = tk.ttk
        self.session = session if session is not None else ViewerSession()
        self.top = tk.Toplevel(master)
        self.top.title("Visor de Resonancia")
        self.top.geometry("1200x800")
        self._photos: dict = {}

        menubar = tk.Menu(self.top)
        functions = tk.Menu(menubar, tearoff=False)
        functions.add_command(label="🎥 Generar video", command=self._generate_videos)
        menubar.add_cascade(label="Otras funciones", menu=functions)
        self.top.config(menu=menubar)

        images = tk.Frame(self.top)
        images.pack(fill="both", expand=True)
        self._labels = {}
        for key in _VIEW_KEYS:
            label = tk.Label(images, relief="solid", borderwidth=1)
            label.pack(side="left", fill="both", expand=True, padx=2, pady=2)
            self._labels[key] = label

        self._slider = tk.Scale(
            self.top, orient="horizontal", from_=0, to=0, command=self._on_slider
        )
        self._slider.pack(fill="x")

        controls = tk.Frame(self.top)
        controls.pack(fill="x")
        self._mask_var = tk.BooleanVar(value=self.session.show_mask)
        self._tumor_var = tk.BooleanVar(value=self.session.show_tumor_only)
        self._mask_check = tk.Checkbutton(
            controls, text="Mostrar Máscara", variable=self._mask_var, command=self._on_mask
        )
        self._tumor_check = tk.Checkbutton(
            controls, text="Solo Tumor", variable=self._tumor_var, command=self._on_tumor
        )
        self._combo = ttk.Combobox(controls, values=[kind.label for kind in FilterKind])
        self._combo.set(self.session.filter_kind.label)
        self._combo.bind("<<ComboboxSelected>>", self._on_filter)
        for widget in (self._mask_check, self._tumor_check, self._combo):
            widget.pack(side="left", padx=2)

        buttons = (
            ("📂 Cargar imagen", self._load),
            ("📊 Estadísticas del Tumor", self._tumor_stats),
            ("📊 Estadísticas del Filtro", self._filter_stats),
            ("💾 Guardar Tumor", self._save_tumor),
            ("💾 Guardar Filtro", self._save_filter),
            ("📂 Analizar carpeta Tumor", lambda: self._analyze(TUMOR_DIR)),
            ("📂 Analizar carpeta Filtro", lambda: self._analyze(FILTER_DIR)),
        )
        for text, command in buttons:
            tk.Button(controls, text=text, command=command).pack(side="left", padx=2)

        if self.session.has_data:
            self._data_loaded()
        else:
            self._set_controls(False)
            self.refresh()

    def _set_controls(self, enabled: bool) -> None:
        state = "normal" if enabled else "disabled"
        for widget in (self._slider, self._mask_check, self._tumor_check):
            widget.configure(state=state)
        self._combo.configure(state="readonly" if enabled else "disabled")

    def _data_loaded(self) -> None:
        self._slider.configure(to=len(self.session.slices) - 1)
        self._set_controls(True)
        self._slider.set(self.session.current_z)
        self.refresh()

    def refresh(self) -> None:
        """Redraw the four image panes from the session."""
        from PIL import ImageTk

        views = self.session.views()
        self._photos.clear()
        for key, label in self._labels.items():
            array = None if views is None else views[key]
            if array is None:
                label.configure(image="")
                continue
            photo = ImageTk.PhotoImage(_display_image(array), master=self.top)
            self._photos[key] = photo
            label.configure(image=photo)

    def _on_slider(self, value) -> None:
        if not self.session.has_data:
            return
        self.session.select_slice(int(float(value)))
        self.refresh()

    def _on_mask(self) -> None:
        self.session.show_mask = bool(self._mask_var.get())
        self.refresh()

    def _on_tumor(self) -> None:
        self.session.show_tumor_only = bool(self._tumor_var.get())
        self.refresh()

    def _on_filter(self, _event=None) -> None:
        self.session.filter_kind = self._combo.get()
        self.refresh()

    def _warn(self, title: str, message: str) -> None:
        _tk().messagebox.showwarning(title, message, parent=self.top)

    def _load(self) -> None:
        if _ask_and_load(self.top, self.session):
            self._data_loaded()

    def _tumor_stats(self) -> None:
        if not self.session.has_data:
            self._warn("Advertencia", "No hay datos disponibles para mostrar estadísticas.")
            return
        _show_figure(self.top, self.session.tumor_stats(), "Estadísticas del Tumor")

    def _filter_stats(self) -> None:
        if not self.session.has_data:
            self._warn("Advertencia", "No hay datos disponibles para mostrar estadísticas.")
            return
        try:
            figure = self.session.filter_stats()
        except ValueError:
            self._warn("Advertencia", "Selecciona un filtro válido antes de continuar.")
            return
        _show_figure(self.top, figure, "Estadísticas del Filtro")

    def _save_tumor(self) -> None:
        if not self.session.masks:
            return
        try:
            self.session.save_tumor()
        except OSError:
            self._warn("Error", "No se pudo guardar la imagen del tumor.")

    def _save_filter(self) -> None:
        try:
            self.session.save_filter()
        except ValueError:
            self._warn("Advertencia", "No hay imagen filtrada visible.")
        except OSError:
            self._warn("Error", "No se pudo guardar la imagen filtrada.")

    def _analyze(self, folder) -> None:
        try:
            results = analyze_folder(folder)
        except FileNotFoundError:
            self._warn("Carpeta no encontrada", f"No existe la carpeta: {folder}")
            return
        for path, figure in results:
            _show_figure(self.top, figure, f"Estadísticas - {path.name}")

    def _generate_videos(self) -> None:
        tk = _tk()
        if not self.session.has_data:
            self._warn("Advertencia", "No hay datos cargados para generar videos.")
            return
        try:
            self.session.generate_videos(VIDEO_DIR)
        except (OSError, ValueError) as exc:
            tk.messagebox.showerror(
                "Error", f"No se pudo crear los archivos de video: {exc}", parent=self.top
            )
            return
        tk.messagebox.showinfo(
            "Videos generados",
            "Se han generado los siguientes videos:\n"
            "- Imagen original\n"
            "- Imagen con máscara\n"
            "- Imagen filtrada (si aplica)\n\nGuardados en:\n" + str(VIDEO_DIR.resolve()),
            parent=self.top,
        )


def _filter_arg(text: str) -> FilterKind:
    try:
        return FilterKind.from_label(text)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(str(exc)) from None


def build_parser() -> argparse.ArgumentParser:
    """The command-line parser of the viewer."""
    parser = argparse.ArgumentParser(
        prog="niftiviewer", description="View NIfTI slices with their tumour masks."
    )
    parser.add_argument("image", nargs="?", help="NIfTI image volume")
    parser.add_argument("mask", nargs="?", help="NIfTI mask volume")
    parser.add_argument(
        "--filter",
        type=_filter_arg,
        default=FilterKind.NONE,
        help="initial filter, by its menu label",
    )
    parser.add_argument("--slice", type=int, default=0, help="initial slice index")
    parser.add_argument(
        "--no-welcome", action="store_true", help="skip the welcome dialog"
    )
    return parser


def main(argv=None) -> int:
    """Start the viewer; returns the process exit status."""
    parser = build_parser()
    args = parser.parse_args(argv)
    if (args.image is None) != (args.mask is None):
        parser.error("give both an image and a mask, or neither")

    session = ViewerSession(filter_kind=args.filter)
    if args.image is not None:
        try:
            session.load(args.image, args.mask)
            session.select_slice(args.slice)
        except (*_LOAD_ERRORS, IndexError) as exc:
            print(f"niftiviewer: {exc}", file=sys.stderr)
            return 1

    for folder in (FILTER_DIR, TUMOR_DIR, VIDEO_DIR):
        folder.mkdir(parents=True, exist_ok=True)

    tk = _tk()
    root = tk.Tk()
    root.withdraw()

    def open_viewer() -> None:
        viewer = ViewerWindow(root, session)
        viewer.top.protocol("WM_DELETE_WINDOW", root.destroy)

    def start_interactive() -> None:
        if _ask_and_load(root, session):
            open_viewer()
        else:
            tk.messagebox.showwarning(
                "Error", "No se pudieron cargar las imágenes o máscaras.", parent=root
            )
            root.destroy()

    if session.has_data:
        open_viewer()
    elif args.no_welcome:
        root.after_idle(start_interactive)
    else:
        WelcomeDialog(root, start_interactive, root.destroy)

    root.mainloop()
    return 0


if __name__ == "__main__":
    sys.exit(main())