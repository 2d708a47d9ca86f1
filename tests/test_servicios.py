import pytest
import requests

from conftest import archivo
from infra.servicios import AnotadorHttp, EmparejadorHttp
from logic.errores import TransporteError
from logic.modelos import Anotacion, EstadoTicket
from logic.tickets import ProcesadorTickets


class RespuestaFalsa:
    def __init__(self, data=None, status=200, json_invalido=False):
        self.data = data
        self.status_code = status
        self.json_invalido = json_invalido

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} Server Error")

    def json(self):
        if self.json_invalido:
            raise ValueError("Expecting value")
        return self.data


class SesionFalsa:
    def __init__(self, respuesta=None, error=None):
        self.respuesta = respuesta
        self.error = error
        self.posts = []

    def post(self, url, json=None, timeout=None):
        self.posts.append((url, json, timeout))
        if self.error:
            raise self.error
        return self.respuesta


def test_anotador_envia_base64_y_tipo():
    sesion = SesionFalsa(RespuestaFalsa({
        "importe": 12.5, "fecha": "2024-01-15", "comercio": "Bar Lorem",
        "concepto": "comida", "tipo": "Restaurante", "confianza": 85.4,
    }))
    anotador = AnotadorHttp(url="http://anotador/api", timeout=5, session=sesion)

    anotacion = anotador.analizar("QUJD", "image/png")

    assert sesion.posts == [("http://anotador/api", {"base64Data": "QUJD", "mimeType": "image/png"}, 5)]
    assert anotacion == Anotacion(
        importe=12.5, fecha="2024-01-15", comercio="Bar Lorem",
        concepto="comida", categoria="restaurante", confianza=85,
    )


def test_anotador_ticket_invalido():
    sesion = SesionFalsa(RespuestaFalsa({"error": "No es un ticket válido"}))
    anotacion = AnotadorHttp(url="http://x", session=sesion).analizar("QUJD", "image/png")
    assert not anotacion.valida
    assert anotacion.error == "No es un ticket válido"


def test_tipo_desconocido_y_confianza_fuera_de_rango():
    sesion = SesionFalsa(RespuestaFalsa({"importe": "8,90", "tipo": "ferreteria", "confianza": 140}))
    anotacion = AnotadorHttp(url="http://x", session=sesion).analizar("QUJD", "image/png")
    assert anotacion.importe == 8.9
    assert anotacion.categoria == "otro"
    assert anotacion.confianza == 100


@pytest.mark.parametrize("sesion", [
    SesionFalsa(error=requests.ConnectionError("connection refused")),
    SesionFalsa(error=requests.Timeout("read timeout")),
    SesionFalsa(RespuestaFalsa({"error": "API key not configured"}, status=500)),
    SesionFalsa(RespuestaFalsa(json_invalido=True)),
    SesionFalsa(RespuestaFalsa(["no", "dict"])),
])
def test_anotador_fallos_de_transporte(sesion):
    with pytest.raises(TransporteError):
        AnotadorHttp(url="http://x", session=sesion).analizar("QUJD", "image/png")


def test_emparejador_envia_resumenes():
    respuesta = {"matches": [], "movimientos_sin_ticket": [0], "tickets_sin_movimiento": [], "resumen": "ok"}
    sesion = SesionFalsa(RespuestaFalsa(respuesta))
    emparejador = EmparejadorHttp(url="http://emparejador/api", timeout=30, session=sesion)

    movs = [{"idx": 0, "fecha": "10/01/2025", "importe": -5.0, "concepto": "BAR"}]
    ticks = [{"idx": 0, "filename": "a.png", "importe": 5.0}]
    assert emparejador.emparejar(movs, ticks) == respuesta
    assert sesion.posts == [("http://emparejador/api", {"movements": movs, "tickets": ticks}, 30)]


def test_emparejador_sin_conexion():
    sesion = SesionFalsa(error=requests.ConnectionError("boom"))
    with pytest.raises(TransporteError):
        EmparejadorHttp(url="http://x", session=sesion).emparejar([], [])


def test_urls_por_defecto_desde_config():
    anotador = AnotadorHttp()
    assert anotador.url.endswith("/api/analyze-ticket")
    assert anotador.timeout > 0


def test_error_de_conexion_queda_en_el_ticket():
    sesion = SesionFalsa(error=requests.ConnectionError("connection refused"))
    with ProcesadorTickets(AnotadorHttp(url="http://x", session=sesion)) as proc:
        proc.recibir([archivo("a.png"), archivo("b.pdf", tipo="application/pdf")])
        tickets = proc.procesar()
        assert [t.estado for t in tickets] == [EstadoTicket.ERROR, EstadoTicket.ERROR]
        assert tickets[0].anotacion.error == "Error de conexión"
        assert len(sesion.posts) == 2
