# modules/codigos.py
"""
Limpieza de códigos de recetas escaneados.

El lector a veces confunde dígitos con letras o signos (una 'O' por un 0,
una 'S' por un 5, un '&' por un 6...). Acá se corrigen esos caracteres con
una tabla fija y después se descarta todo lo que no sea un dígito 0-9.

Todo es puro: no toca la base ni la sesión.
"""
from typing import Iterable, List, Optional

# ------------------ Caracteres mal escaneados -> dígito ------------------
SUSTITUCIONES = {
    "&": "6",
    "'": "7",
    "(": "6",
    ")": "0",
    "O": "0",
    "I": "1",
    "l": "1",
    "S": "5",
    "s": "5",
    "B": "8",
    "Z": "2",
    "G": "6",
    "D": "0",
}

# Sólo ASCII: str.isdigit() aceptaría '٣' o '²'
DIGITOS = frozenset("0123456789")

# ------------------ Categorías (por primer dígito) ------------------
CATEGORIAS = {
    "apross": "9",
    "pami": "8",
}

ARCHIVOS_EXPORTACION = {
    None: "Codigos.txt",
    "apross": "Codigos_APROSS.txt",
    "pami": "Codigos_PAMI.txt",
}


def normalizar_codigo(raw) -> Optional[str]:
    """
    Devuelve el código limpio (sólo dígitos) o None si no queda nada.

    Una sola pasada: cada carácter se reemplaza según SUSTITUCIONES y se
    conserva sólo si terminó siendo un dígito.
      - "O&I'B" -> "06178"
      - "9A1"   -> "91"
      - "abc"   -> None
    """
    if raw is None:
        return None
    limpio = []
    for ch in str(raw):
        ch = SUSTITUCIONES.get(ch, ch)
        if ch in DIGITOS:
            limpio.append(ch)
    return "".join(limpio) or None


def limpiar_codigos(numeros: Iterable, prefijo: Optional[str] = None) -> List[str]:
    """
    Normaliza un lote de números, descarta los vacíos, filtra por prefijo
    (si se pide) y saca duplicados respetando el orden de primera aparición.
    """
    vistos = set()
    salida = []
    for numero in numeros:
        codigo = normalizar_codigo(numero)
        if codigo is None:
            continue
        if prefijo and not codigo.startswith(prefijo):
            continue
        if codigo in vistos:
            continue
        vistos.add(codigo)
        salida.append(codigo)
    return salida


def categoria_de(codigo: Optional[str]) -> Optional[str]:
    """'apross' si empieza con 9, 'pami' si empieza con 8, si no None."""
    if not codigo:
        return None
    for nombre, digito in CATEGORIAS.items():
        if codigo.startswith(digito):
            return nombre
    return None


def prefijo_de(categoria: Optional[str]) -> Optional[str]:
    if categoria is None:
        return None
    try:
        return CATEGORIAS[categoria]
    except KeyError:
        raise ValueError(f"Categoría desconocida: {categoria}")


def nombre_archivo(categoria: Optional[str] = None) -> str:
    return ARCHIVOS_EXPORTACION[categoria]


def armar_txt(codigos: Iterable[str]) -> str:
    """Un código por línea, sin encabezado ni salto final."""
    return "\n".join(codigos)
