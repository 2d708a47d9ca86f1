from datetime import date, datetime

import pandas as pd
import pytest

from logic.errores import ConfiguracionError
from logic.lectura import (
    MapeoColumnas,
    aplicar_mapeo,
    detectar_columnas,
    leer_grilla,
    normalizar_columna_descripcion,
    parsear_fecha,
    parsear_importe,
)


def test_encabezado_despues_de_filas_de_titulo():
    grilla = [
        ["Extracto de cuenta"],
        [],
        ["Fecha", "Concepto", "Importe"],
        ["01/02/2025", "Cafe", "3,50"],
    ]
    encabezados, filas = leer_grilla(grilla)
    assert encabezados == ["Fecha", "Concepto", "Importe"]
    assert len(filas) == 1
    assert filas.iloc[0, 1] == "Cafe"


def test_se_elige_la_primera_fila_que_califica():
    grilla = [
        ["Banco Lorem", "Cuenta corriente"],
        ["Fecha", "Importe"],
        ["01/02/2025", "3,50"],
    ]
    encabezados, filas = leer_grilla(grilla)
    assert encabezados == ["Banco Lorem", "Cuenta corriente"]
    assert len(filas) == 2


def test_textos_numericos_no_cuentan_como_encabezado():
    grilla = [
        ["2024", "3.5", "Total"],
        ["Fecha", "Importe", ""],
        ["01/02/2025", "3,50", ""],
    ]
    encabezados, _ = leer_grilla(grilla)
    assert encabezados[:2] == ["Fecha", "Importe"]


def test_sin_encabezado_usa_la_fila_0():
    encabezados, filas = leer_grilla([[1, 2], [3, 4]])
    assert encabezados == ["1", "2"]
    assert filas.values.tolist() == [[3, 4]]


def test_solo_se_inspeccionan_las_primeras_filas():
    grilla = [[i] for i in range(12)] + [["Fecha", "Importe"], ["01/02/2025", 5]]
    encabezados, filas = leer_grilla(grilla)
    assert encabezados == ["0", "Columna B"]
    assert len(filas) == 13


def test_columnas_sin_titulo_reciben_letra():
    grilla = [
        ["Fecha", None, "Importe", ""],
        ["01/02/2025", "x", 5, "", "extra"],
    ]
    encabezados, _ = leer_grilla(grilla)
    assert encabezados == ["Fecha", "Columna B", "Importe", "Columna D", "Columna E"]


def test_filas_vacias_se_excluyen():
    grilla = [
        ["Fecha", "Importe"],
        ["01/02/2025", "5"],
        [],
        [None, ""],
        ["   ", float("nan")],
        ["02/02/2025", "7"],
    ]
    _, filas = leer_grilla(grilla)
    assert filas.iloc[:, 1].tolist() == ["5", "7"]


def test_grilla_desde_dataframe():
    df = pd.DataFrame([[None, None], ["Fecha", "Importe"], ["01/02/2025", 5]])
    encabezados, filas = leer_grilla(df)
    assert encabezados == ["Fecha", "Importe"]
    assert list(filas.columns) == [0, 1]


def test_detectar_columnas_con_acentos():
    mapeo = detectar_columnas(["Fecha", "Descripción", "Importe"])
    assert mapeo == MapeoColumnas(fecha=0, importe=2, concepto=1)


def test_detectar_columnas_en_ingles():
    mapeo = detectar_columnas(["Date", "Description", "Amount", "Balance"])
    assert mapeo == MapeoColumnas(fecha=0, importe=2, concepto=1)


def test_gana_la_primera_columna_que_coincide():
    mapeo = detectar_columnas(["Cargo", "Importe", "Concepto", "Detalle"])
    assert mapeo.importe == 0
    assert mapeo.concepto == 2
    assert mapeo.fecha is None


def test_override_conserva_los_demas_roles():
    mapeo = MapeoColumnas(fecha=0, importe=1, concepto=2).con(importe=3)
    assert mapeo == MapeoColumnas(fecha=0, importe=3, concepto=2)


def test_sin_columna_importe_falla():
    _, filas = leer_grilla([["Fecha", "Concepto"], ["01/02/2025", "x"]])
    with pytest.raises(ConfiguracionError):
        aplicar_mapeo(filas, MapeoColumnas(fecha=0, concepto=1))


def test_columna_fuera_de_rango_falla():
    _, filas = leer_grilla([["Fecha", "Importe"], ["01/02/2025", "5"]])
    with pytest.raises(ConfiguracionError):
        aplicar_mapeo(filas, MapeoColumnas(importe=5))


def test_coma_decimal_igual_que_punto():
    _, filas = leer_grilla([["Importe", "Concepto"], ["12,50", "a"], ["12.50", "b"]])
    movs = aplicar_mapeo(filas, MapeoColumnas(importe=0, concepto=1))
    assert [m.importe for m in movs] == [12.50, 12.50]


def test_importe_cero_se_descarta_e_indices_densos():
    grilla = [["Importe"], ["0"], ["abc"], ["5"], ["0,00"], ["-3,2"], [None]]
    _, filas = leer_grilla(grilla)
    movs = aplicar_mapeo(filas, MapeoColumnas(importe=0))
    assert [m.indice for m in movs] == [0, 1]
    assert [m.importe for m in movs] == [5.0, -3.2]
    assert all(m.importe != 0 for m in movs)


def test_importes_de_menos_de_un_centimo_no_son_cero():
    _, filas = leer_grilla([["Importe"], ["0,004"], ["Ref 123"], ["12,499"]])
    movs = aplicar_mapeo(filas, MapeoColumnas(importe=0))
    assert [m.importe for m in movs] == [0.004, 12.5]


def test_fecha_y_concepto_opcionales():
    _, filas = leer_grilla([["Fecha", "Importe"], ["01/02/2025", "5"]])
    (mov,) = aplicar_mapeo(filas, MapeoColumnas(importe=1))
    assert mov.fecha is None
    assert mov.concepto == ""
    assert list(mov.fila) == ["01/02/2025", "5"]


def test_movimiento_completo():
    grilla = [
        ["Fecha", "Concepto", "Importe"],
        ["15/03/2024", "COMPRA SUPER", "-45,30"],
        [datetime(2024, 3, 16), 48923.0, -12],
    ]
    encabezados, filas = leer_grilla(grilla)
    movs = aplicar_mapeo(filas, detectar_columnas(encabezados))
    assert movs[0].fecha == date(2024, 3, 15)
    assert movs[0].concepto == "COMPRA SUPER"
    assert movs[0].importe == -45.30
    assert movs[1].fecha == date(2024, 3, 16)
    assert movs[1].concepto == "48923"


@pytest.mark.parametrize("valor, esperado", [
    ("12,50", 12.5),
    ("1.234,56", 1234.56),
    ("1,234.56", 1234.56),
    ("12,50 €", 12.5),
    ("-7", -7.0),
    (7, 7.0),
    ("abc", None),
    ("Ref 123", None),
    ("1e5", 100000.0),
    ("1 234,56 EUR", 1234.56),
    ("nan", None),
    (None, None),
])
def test_parsear_importe(valor, esperado):
    assert parsear_importe(valor) == esperado


def test_parsear_fecha():
    assert parsear_fecha("15/03/2024") == date(2024, 3, 15)
    assert parsear_fecha("2024-03-15") == date(2024, 3, 15)
    assert parsear_fecha(45292) == date(2024, 1, 1)  # numero de serie Excel
    assert parsear_fecha(datetime(2024, 3, 15, 10, 30)) == date(2024, 3, 15)
    assert parsear_fecha("ayer") == "ayer"
    assert parsear_fecha("") is None


def test_normalizar_columna_descripcion_numeros():
    serie = pd.Series([48923.0, 48924, "48925", None, float("nan"), 51234.50])
    normalizada = normalizar_columna_descripcion(serie)
    assert normalizada.tolist() == ["48923", "48924", "48925", "", "", "51234.5"]
